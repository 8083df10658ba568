"""
Valuation core: cache interface, fan-out orchestration, consolidation,
persistence of results and the service facade used by callers.
"""
