import pytest
import requests

from conftest import FakeHttp, FakeResponse, FakeSession
from scrapers.apollo_client import (
    API_URL, ApolloClient, SkuQuery, call, classify_response, get_sku_info, summarize_sku_info,
)
from scrapers.errors import ApiError, TokenExpired, TokenNotFound, TokenRefreshFailed

UNAUTH = {"errors": [{"message": "Unauthorized", "extensions": {"code": "UNAUTHENTICATED"}}]}

SKU_INFO = {
    "stat": "OK",
    "expiryDate": "2027-03-31",
    "pdpPriceInfo": {"price": 500, "mrp": 550, "discount": 9, "sellingPrice": 500, "discountPercent": 9.1},
    "tatInfo": {"magentoAvailability": True, "message": "Delivery by tomorrow", "unitPrice": 8.3, "packInfo": "60 softgels"},
}


class TestClassifyResponse:
    def test_data_is_returned(self):
        assert classify_response(200, {"data": {"getSkuInfo": {}}}) == {"getSkuInfo": {}}

    def test_http_401_is_expired(self):
        with pytest.raises(TokenExpired):
            classify_response(401, None)

    def test_embedded_unauthenticated_is_expired_even_on_200(self):
        with pytest.raises(TokenExpired):
            classify_response(200, UNAUTH)

    def test_embedded_unauthenticated_on_500(self):
        with pytest.raises(TokenExpired):
            classify_response(500, UNAUTH)

    @pytest.mark.parametrize("status,body", [
        (403, {"errors": [{"message": "Forbidden"}]}),
        (500, None),
        (200, None),
        (200, {"errors": [{"message": "SKU not found", "extensions": {"code": "BAD_USER_INPUT"}}]}),
        (200, {"errors": [{"message": "unauthenticated"}]}),
        (200, {"data": None}),
    ])
    def test_everything_else_is_api_error(self, status, body):
        with pytest.raises(ApiError):
            classify_response(status, body)

    def test_api_error_keeps_status(self):
        with pytest.raises(ApiError) as exc:
            classify_response(502, {})
        assert exc.value.status_code == 502


class TestCall:
    def test_sends_bearer_and_payload(self):
        http = FakeHttp(FakeResponse(200, {"data": {"getSkuInfo": SKU_INFO}}))

        info = get_sku_info("tok123", SkuQuery("NEU1021", pincode="500032"), http=http)

        assert info == SKU_INFO
        sent = http.calls[0]
        assert sent["url"] == API_URL
        assert sent["headers"]["authorization"] == "Bearer tok123"
        assert sent["headers"]["content-type"] == "application/json"
        assert sent["headers"]["origin"] == "https://www.apollopharmacy.in"
        assert sent["json"]["operationName"] == "getSkuInfo"
        sku_input = sent["json"]["variables"]["skuInfoInput"]
        assert sku_input["sku"] == "NEU1021"
        assert sku_input["qty"] == 1
        assert sku_input["addressInfo"]["pincode"] == "500032"
        assert sent["timeout"]

    def test_network_error_is_api_error(self):
        http = FakeHttp(requests.ConnectionError("connection reset"))
        with pytest.raises(ApiError):
            call("tok", "getSkuInfo", {}, "query", http=http)

    def test_non_json_body_is_api_error(self):
        http = FakeHttp(FakeResponse(200, raw="<html>blocked</html>"))
        with pytest.raises(ApiError):
            call("tok", "getSkuInfo", {}, "query", http=http)

    def test_missing_sku_block_is_api_error(self):
        http = FakeHttp(FakeResponse(200, {"data": {"getSkuInfo": None}}))
        with pytest.raises(ApiError):
            get_sku_info("tok", SkuQuery("NOPE"), http=http)


def test_summarize_sku_info():
    summary = summarize_sku_info("NEU1021", SKU_INFO)
    assert summary["product_url"].endswith("/medicine-info/NEU1021")
    assert summary["pricing"]["selling_price"] == 500
    assert summary["availability"]["pack_info"] == "60 softgels"
    assert summary["raw_data"] is SKU_INFO


class TokenSource:
    def __init__(self, fail_after=None, error=None, fail_first=0):
        self.sessions = []
        self.calls = 0
        self.fail_after = fail_after
        self.error = error
        self.fail_first = fail_first

    def __call__(self):
        self.calls += 1
        if self.calls <= self.fail_first or (self.fail_after is not None and len(self.sessions) >= self.fail_after):
            raise self.error or TokenNotFound("no token")
        session = FakeSession()
        self.sessions.append(session)
        return f"t{len(self.sessions)}", session


def scripted(*outcomes):
    """fn(token, ...) that plays back outcomes and records the tokens it saw."""
    seen = []
    queue = list(outcomes)

    def fn(token, *args, **kwargs):
        seen.append(token)
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fn, seen


class TestCallWithRefresh:
    def test_token_acquired_lazily(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        assert source.sessions == []
        fn, seen = scripted("ok")
        assert client.call_with_refresh(fn) == "ok"
        assert seen == ["t1"]
        assert client.refresh_count == 0

    def test_expired_then_success_refreshes_once(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(TokenExpired("401"), "ok")

        assert client.call_with_refresh(fn) == "ok"

        assert seen == ["t1", "t2"]
        assert client.refresh_count == 1
        assert source.sessions[0].closed
        assert not source.sessions[1].closed
        assert client.token == "t2"

    def test_expired_twice_surfaces_without_second_refresh(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(TokenExpired("401"), TokenExpired("401"))

        with pytest.raises(TokenExpired):
            client.call_with_refresh(fn)

        assert seen == ["t1", "t2"]
        assert client.refresh_count == 1
        assert len(source.sessions) == 2
        assert client.token is None

    def test_dead_token_is_not_reused_on_next_call(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(TokenExpired("401"), TokenExpired("401"), "ok")

        with pytest.raises(TokenExpired):
            client.call_with_refresh(fn)
        assert client.call_with_refresh(fn) == "ok"

        assert seen == ["t1", "t2", "t3"]
        assert source.sessions[1].closed

    def test_other_error_surfaces_without_refresh(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(ApiError("SKU not found"))

        with pytest.raises(ApiError, match="SKU not found"):
            client.call_with_refresh(fn)

        assert client.refresh_count == 0
        assert len(source.sessions) == 1
        assert client.token == "t1"

    def test_failed_refresh_is_terminal(self):
        source = TokenSource(fail_after=1)
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(TokenExpired("401"))

        with pytest.raises(TokenRefreshFailed) as exc:
            client.call_with_refresh(fn)
        assert isinstance(exc.value.__cause__, TokenNotFound)
        with pytest.raises(TokenRefreshFailed):
            client.call_with_refresh(fn)

        assert seen == ["t1"]
        assert source.sessions[0].closed
        assert source.calls == 2

    def test_navigation_error_during_refresh_is_terminal(self):
        source = TokenSource(fail_after=1, error=RuntimeError("page.goto: Timeout 60000ms exceeded"))
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted(TokenExpired("401"))

        with pytest.raises(TokenRefreshFailed, match="Timeout 60000ms"):
            client.call_with_refresh(fn)
        with pytest.raises(TokenRefreshFailed):
            client.ensure_token()

        assert source.calls == 2
        assert isinstance(client.failure.__cause__, RuntimeError)

    def test_failed_first_bootstrap_can_be_retried(self):
        source = TokenSource(fail_first=1)
        client = ApolloClient(token_source=source, http=FakeHttp())
        fn, seen = scripted("ok")

        with pytest.raises(TokenNotFound):
            client.call_with_refresh(fn)
        assert client.failure is None

        assert client.call_with_refresh(fn) == "ok"
        assert seen == ["t1"]

    def test_refresh_skipped_when_token_already_replaced(self):
        source = TokenSource()
        client = ApolloClient(token_source=source, http=FakeHttp())
        client.ensure_token()
        client.refresh("t1")

        assert client.refresh("t1") == "t2"
        assert len(source.sessions) == 2
        assert client.refresh_count == 1

    def test_get_sku_info_over_http(self):
        http = FakeHttp(
            FakeResponse(200, UNAUTH),
            FakeResponse(200, {"data": {"getSkuInfo": SKU_INFO}}),
        )
        client = ApolloClient(token_source=TokenSource(), http=http)

        assert client.get_sku_info(SkuQuery("NEU1021")) == SKU_INFO
        assert [c["headers"]["authorization"] for c in http.calls] == ["Bearer t1", "Bearer t2"]

    def test_close_releases_session(self):
        source = TokenSource()
        with ApolloClient(token_source=source, http=FakeHttp()) as client:
            client.ensure_token()
        assert source.sessions[0].closed
        assert client.token is None

    def test_close_releases_own_http_session(self):
        client = ApolloClient(token_source=TokenSource())
        assert isinstance(client.http, requests.Session)
        closed = []
        client.http.close = lambda: closed.append(True)

        client.close()

        assert closed == [True]

    def test_search_products_over_http(self):
        found = {"products": [{"sku": "NEU1021", "name": "Neuherbs Fish Oil"}], "total_count": 1}
        http = FakeHttp(FakeResponse(200, {"data": {"searchMedicineProducts": found}}))
        client = ApolloClient(token_source=TokenSource(), http=http)

        assert client.search_products("fish oil", page_size=5) == found

        sent = http.calls[0]["json"]
        assert sent["operationName"] == "searchMedicineProducts"
        assert sent["variables"] == {"searchText": "fish oil", "pageSize": 5, "offset": 0}
        assert http.calls[0]["headers"]["authorization"] == "Bearer t1"
