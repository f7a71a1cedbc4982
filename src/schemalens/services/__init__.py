"""Service layer — neighborhood fetching, selection, and FK confirmation.

Services return :class:`~schemalens.services.result.ServiceResult` at every
public boundary; infrastructure exceptions never escape to the host.
"""
