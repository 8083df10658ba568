"""
Pricing source adapters.

One adapter per external provider, all implementing ``SourceAdapter``:
``is_available()`` (credentials present and well-formed),
``is_applicable(subject)`` (category / vocabulary routing) and
``fetch(subject, client)`` (one logical request, translated into a
``SourceObservation`` or ``None``; never raises).
"""
