"""HTTP surface of the account service: response envelope, errors and app assembly."""

from api.base import APIError, APIMeta, APIResponse, ErrorCodes, error_response, success_response
