"""
Clients Package - outbound HTTP clients.

- http: client factory with pooling and timeouts
- remote_service: remote tool providers (parliament, business registry)
- court_search: court decision search API and decision pages
"""

from legal_gateway.clients.court_search import CourtSearchClient, normalize_response
from legal_gateway.clients.http import create_http_client, create_page_client
from legal_gateway.clients.remote_service import RemoteServiceClient

__all__ = [
    "create_http_client",
    "create_page_client",
    "RemoteServiceClient",
    "CourtSearchClient",
    "normalize_response",
]
