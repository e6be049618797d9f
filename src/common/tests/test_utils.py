from django.test import RequestFactory

from common.utils import get_client_ip


def test_get_client_ip_prefers_forwarded_for(rf: RequestFactory) -> None:
    request = rf.get("/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", REMOTE_ADDR="10.0.0.1")
    assert get_client_ip(request) == "203.0.113.7"


def test_get_client_ip_falls_back_to_remote_addr(rf: RequestFactory) -> None:
    request = rf.get("/", REMOTE_ADDR="192.0.2.1")
    assert get_client_ip(request) == "192.0.2.1"


def test_get_client_ip_rejects_garbage(rf: RequestFactory) -> None:
    request = rf.get("/", HTTP_X_FORWARDED_FOR="not-an-ip")
    assert get_client_ip(request) is None
