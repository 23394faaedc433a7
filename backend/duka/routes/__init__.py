# Overview: Shared error-to-response mapping for the API blueprints.

from flask import jsonify

from ..errors import (
    NotFoundError,
    PersistenceError,
    PosError,
    RegisterStateError,
    SaleCommitError,
    ValidationError,
)


def error_response(e: PosError):
    """
    Map an engine error to a JSON response.

    - RegisterStateError -> 409
    - ValidationError -> 400
    - NotFoundError -> 404
    - SaleCommitError -> 503 when safe to retry, 500 when records were orphaned
    - other PersistenceError -> 503
    """
    body = {"error": str(e)}
    if e.details:
        body["details"] = e.details

    if isinstance(e, RegisterStateError):
        return jsonify(body), 409
    if isinstance(e, ValidationError):
        return jsonify(body), 400
    if isinstance(e, NotFoundError):
        return jsonify(body), 404
    if isinstance(e, SaleCommitError):
        body["retryable"] = e.retryable
        body["requires_reconciliation"] = e.requires_reconciliation
        return jsonify(body), 500 if e.requires_reconciliation else 503
    if isinstance(e, PersistenceError):
        body["retryable"] = e.retryable
        return jsonify(body), 503
    return jsonify(body), 400
