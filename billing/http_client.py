"""Shared httpx client for calls from billing to the payment gateway."""

from billing.constants import HTTP_CONNECT_TIMEOUT, HTTP_TOTAL_TIMEOUT
from src.http import SharedHttpClient

_shared = SharedHttpClient(HTTP_TOTAL_TIMEOUT, HTTP_CONNECT_TIMEOUT)

get_http_client = _shared.get
set_http_client = _shared.set
init_http_client = _shared.init
close_http_client = _shared.close
