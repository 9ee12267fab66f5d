"""
API tests: error taxonomy, session-scoped GSC access, imports, data queries and dashboard sections.
"""

from conftest import SESSION_HEADERS

API = "/api/v1"
SITE = "https://example.com/"

IMPORT_BODY = {"siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-02"}

AHREFS_CSV = (
    b"Keyword,Current URL,Current position,Previous position,Volume,Current organic traffic,"
    b"Previous organic traffic,Current date\n"
    b"seo tools,https://example.com/tools,2,4,1200,90,60,2024-02-01\n"
    b"backlinks,https://example.com/links,12,,400,5,,2024-02-01\n"
)


def dashboard_body(**filters):
    body = {
        "siteUrl": SITE,
        "filters": {"dateRange": {"startDate": "2024-01-01", "endDate": "2024-01-02"}},
    }
    body["filters"].update(filters)
    return body


def import_gsc(client):
    resp = client.post(f"{API}/gsc/import", json=IMPORT_BODY, headers=SESSION_HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()


def import_ahrefs(client, content=AHREFS_CSV):
    resp = client.post(f"{API}/ahrefs/import", files={"file": ("keywords.csv", content, "text/csv")})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestSystem:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "running"

    def test_health_reports_cache_unavailable(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["cache"] == "unavailable"


class TestGSCAuth:

    def test_status_without_session(self, client):
        assert client.get(f"{API}/gsc/auth/status").json() == {"connected": False}

    def test_sync_then_status(self, connected_client):
        resp = connected_client.get(f"{API}/gsc/auth/status", headers=SESSION_HEADERS)
        assert resp.json() == {"connected": True, "has_refresh_token": True}

    def test_sync_without_tokens_is_400(self, client):
        resp = client.post(f"{API}/gsc/auth/sync", json={"tokens": {}}, headers=SESSION_HEADERS)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Tokens are required"

    def test_sessions_are_isolated(self, connected_client):
        resp = connected_client.get(f"{API}/gsc/sites", headers={"X-Session-Id": "someone-else"})
        assert resp.status_code == 401

    def test_auth_url_carries_session_state(self, client):
        resp = client.get(f"{API}/gsc/auth/url", headers=SESSION_HEADERS)
        assert resp.status_code == 200
        assert "state=session-test-1234" in resp.json()["auth_url"]

    def test_disconnect(self, connected_client):
        resp = connected_client.delete(f"{API}/gsc/auth", headers=SESSION_HEADERS)
        assert resp.json() == {"success": True, "disconnected": True}
        status = connected_client.get(f"{API}/gsc/auth/status", headers=SESSION_HEADERS).json()
        assert status["connected"] is False


class TestGSCSitesAndImport:

    def test_sites(self, connected_client):
        resp = connected_client.get(f"{API}/gsc/sites", headers=SESSION_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["total"] == 1

    def test_sites_not_connected(self, client):
        resp = client.get(f"{API}/gsc/sites", headers=SESSION_HEADERS)
        assert resp.status_code == 401
        assert resp.json()["error"] == "Not authenticated with Google Search Console"

    def test_missing_fields_is_400_before_auth(self, client):
        resp = client.post(f"{API}/gsc/import", json={"siteUrl": SITE}, headers=SESSION_HEADERS)
        assert resp.status_code == 400
        assert resp.json()["error"] == "siteUrl, startDate, and endDate are required"

    def test_missing_session_header_is_401(self, client):
        resp = client.post(f"{API}/gsc/import", json=IMPORT_BODY)
        assert resp.status_code == 401
        assert "error" in resp.json()

    def test_not_connected_is_401(self, client):
        resp = client.post(f"{API}/gsc/import", json=IMPORT_BODY, headers=SESSION_HEADERS)
        assert resp.status_code == 401

    def test_import_and_history(self, connected_client):
        result = import_gsc(connected_client)
        assert result["record_count"] == 20
        assert result["time_series_count"] == 8
        assert result["query_page_count"] == 12

        history = connected_client.get(f"{API}/gsc/imports", params={"siteUrl": SITE}).json()
        assert history["success"] is True
        assert history["imports"][0]["import_id"] == result["import_id"]
        assert history["imports"][0]["status"] == "completed"
        assert history["imports"][0]["record_count"] == 20


class TestGSCData:

    def test_pagination(self, connected_client):
        import_gsc(connected_client)
        resp = connected_client.get(f"{API}/gsc/data", params={"siteUrl": SITE, "limit": 8, "page": 1})
        body = resp.json()

        assert resp.status_code == 200
        assert body["pagination"] == {"page": 1, "limit": 8, "total": 20, "has_more": True, "total_pages": 3}
        assert body["data"]

        last = connected_client.get(f"{API}/gsc/data", params={"siteUrl": SITE, "limit": 8, "page": 3}).json()
        assert last["pagination"]["has_more"] is False

    def test_time_series_only(self, connected_client):
        import_gsc(connected_client)
        body = connected_client.get(f"{API}/gsc/data", params={"siteUrl": SITE, "dimensions": "date"}).json()
        assert body["pagination"]["total"] == 8
        assert all("query" not in metric for metric in body["data"])

    def test_post_filters_by_query(self, connected_client):
        import_gsc(connected_client)
        body = connected_client.post(
            f"{API}/gsc/data", json={"siteUrl": SITE, "query": "SEO", "metricTypes": ["clicks"]}
        ).json()
        assert body["pagination"]["total"] == 2
        assert {m["value"] for m in body["data"]} == {6, 12}

    def test_invalid_date_is_400(self, client):
        resp = client.get(f"{API}/gsc/data", params={"startDate": "01/01/2024"})
        assert resp.status_code == 400


class TestAhrefsImport:

    def test_import(self, client):
        result = import_ahrefs(client)
        assert result["record_count"] == 2
        assert result["valid_rows"] == 2

    def test_rejects_non_csv(self, client):
        resp = client.post(f"{API}/ahrefs/import", files={"file": ("keywords.xlsx", b"data", "application/octet-stream")})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Only CSV files are supported"

    def test_missing_keyword_column(self, client):
        resp = client.post(f"{API}/ahrefs/import", files={"file": ("k.csv", b"URL,Volume\nx,1\n", "text/csv")})
        assert resp.status_code == 400
        assert 'Required column "keyword" not found' in resp.json()["error"]

    def test_parse_does_not_store(self, client):
        resp = client.post(f"{API}/ahrefs/parse", files={"file": ("keywords.csv", AHREFS_CSV, "text/csv")})
        assert resp.status_code == 200
        assert len(resp.json()["data"]) == 4

        cleared = client.delete(f"{API}/data/clear", params={"source": "ahrefs"}).json()
        assert cleared["data_records_deleted"] == 0


class TestClearData:

    def test_invalid_source(self, client):
        resp = client.delete(f"{API}/data/clear", params={"source": "bing"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "source must be one of: gsc, ahrefs, all"

    def test_clear_gsc_leaves_ahrefs(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)

        body = connected_client.delete(f"{API}/data/clear", params={"source": "gsc", "siteUrl": SITE}).json()
        assert body["data_records_deleted"] == 20
        assert body["import_records_deleted"] == 1
        assert body["site_url"] == SITE

        body = connected_client.delete(f"{API}/data/clear", params={"source": "all"}).json()
        assert body["data_records_deleted"] == 2
        assert body["import_records_deleted"] == 1


class TestPresets:

    def test_catalogue(self, client):
        body = client.get(f"{API}/dashboard/presets").json()
        assert body["default_comparison_preset"] == "last_28d_vs_previous"
        assert len(body["comparison_presets"]) == 14

    def test_resolve_preset(self, client):
        body = client.get(f"{API}/dashboard/presets/last_28d_vs_previous", params={"today": "2024-03-31"}).json()
        assert body["primary"] == {"start_date": "2024-03-04", "end_date": "2024-03-31"}
        assert body["comparison"] == {"start_date": "2024-02-05", "end_date": "2024-03-03"}

    def test_unknown_preset(self, client):
        resp = client.get(f"{API}/dashboard/presets/last_forever")
        assert resp.status_code == 400


class TestDashboard:

    def test_overview_summary_from_daily_totals(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)

        body = connected_client.post(f"{API}/dashboard/overview", json=dashboard_body()).json()
        summary = body["summary"]

        assert summary["total_clicks"] == 30
        assert summary["total_impressions"] == 200
        assert abs(summary["avg_ctr"] - 0.15) < 1e-9
        assert summary["avg_position"] == 4
        assert summary["total_volume"] == 1600
        assert [card["metric"] for card in body["cards"]] == ["clicks", "impressions", "ctr", "position"]
        assert body["cards"][2]["display"] == "15.00%"
        assert body["top_pages"][0]["url"] == "https://example.com/tools"
        assert body["previous_summary"] is None

    def test_overview_url_filter_uses_detail_rows(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)

        body = dashboard_body()
        body["urls"] = ["https://example.com/tools"]
        summary = connected_client.post(f"{API}/dashboard/overview", json=body).json()["summary"]

        assert summary["total_clicks"] == 18
        assert summary["total_volume"] == 1200

    def test_overview_comparison(self, connected_client):
        import_gsc(connected_client)
        body = dashboard_body(enableComparison=True, comparisonDateRange={"startDate": "2024-01-02", "endDate": "2024-01-02"})
        resp = connected_client.post(f"{API}/dashboard/overview", json=body).json()

        assert resp["comparison_date_range"] == {"start_date": "2024-01-02", "end_date": "2024-01-02"}
        assert resp["previous_summary"]["total_clicks"] == 20
        assert resp["trends"]["clicks"]["change_pct"] == 50.0

    def test_chart(self, connected_client):
        import_gsc(connected_client)
        body = dashboard_body()
        body["filters"]["dateRange"]["endDate"] = "2024-01-03"
        body["metrics"] = ["clicks"]
        series = connected_client.post(f"{API}/dashboard/chart", json=body).json()["series"]

        assert [point["clicks"] for point in series] == [10, 20, None]

    def test_table_joins_ahrefs(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)

        body = connected_client.post(f"{API}/dashboard/table", json=dashboard_body(), params={"limit": 2}).json()
        rows = body["rows"]

        assert body["pagination"]["total"] == 3
        assert rows[0]["query"] == "seo tools"
        assert rows[0]["position"] == 2
        assert rows[0]["position_source"] == "ahrefs"
        assert rows[0]["volume"] == 1200
        assert rows[0]["ahrefs_changes"]["traffic_change"] == 30
        assert rows[1]["query"] == "rank tracker"
        assert rows[1]["position_source"] == "gsc"

    def test_table_export(self, connected_client):
        import_gsc(connected_client)
        resp = connected_client.post(f"{API}/dashboard/table/export", json=dashboard_body())

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "seo-data-2024-01-01-2024-01-02.csv" in resp.headers["content-disposition"]
        lines = resp.text.strip().split("\n")
        assert lines[0].startswith('"Query","URL","Clicks"')
        assert lines[1].startswith('"seo tools","https://example.com/tools","18.0"')

    def test_invalid_date_range_is_400(self, client):
        body = dashboard_body()
        body["filters"]["dateRange"]["startDate"] = "2024-13-01"
        resp = client.post(f"{API}/dashboard/overview", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation error"

    def test_reversed_date_range_is_400(self, client):
        body = dashboard_body()
        body["filters"]["dateRange"] = {"startDate": "2024-01-10", "endDate": "2024-01-01"}
        resp = client.post(f"{API}/dashboard/chart", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation error"

    def test_reversed_comparison_range_is_400(self, client):
        body = dashboard_body(enableComparison=True, comparisonDateRange={"startDate": "2023-12-31", "endDate": "2023-12-01"})
        resp = client.post(f"{API}/dashboard/overview", json=body)
        assert resp.status_code == 400

    def test_table_keeps_exported_traffic_change(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client, content=(
            b"Keyword,Current URL,Volume,Current organic traffic,Previous organic traffic,"
            b"Organic traffic change,Current date\n"
            b"seo tools,https://example.com/tools,1200,90,60,25,2024-02-01\n"
        ))

        rows = connected_client.post(f"{API}/dashboard/table", json=dashboard_body()).json()["rows"]
        tools = next(row for row in rows if row["query"] == "seo tools")

        assert tools["traffic_change"] == 25
        assert tools["ahrefs_changes"]["traffic_change"] == 25
        assert tools["position_source"] == "gsc"
        assert tools["ahrefs_changes"]["position_change"] is None


class TestClusters:

    def create_cluster(self, client, name="Tools and rank", urls=None):
        resp = client.post(
            f"{API}/dashboard/clusters",
            json={"name": name, "urls": urls or ["https://example.com/tools\n/rank"]},
            headers=SESSION_HEADERS,
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["cluster"]

    def test_requires_session(self, client):
        resp = client.post(f"{API}/dashboard/clusters", json={"name": "Blog", "urls": ["/blog/"]})
        assert resp.status_code == 401

    def test_create_splits_urls(self, client):
        cluster = self.create_cluster(client)
        assert cluster["urls"] == ["https://example.com/tools", "/rank"]

    def test_create_without_urls_is_400(self, client):
        resp = client.post(f"{API}/dashboard/clusters", json={"name": "Empty", "urls": []}, headers=SESSION_HEADERS)
        assert resp.status_code == 400

    def test_list_with_all_time_stats(self, connected_client):
        import_gsc(connected_client)
        self.create_cluster(connected_client, urls=["/tools"])

        body = connected_client.get(f"{API}/dashboard/clusters", headers=SESSION_HEADERS).json()
        assert body["count"] == 1
        assert body["clusters"][0]["stats"] == {"total_clicks": 18, "total_impressions": 100, "data_points": 2}

        other = connected_client.get(f"{API}/dashboard/clusters", headers={"X-Session-Id": "session-other-5678"}).json()
        assert other["count"] == 0

    def test_update_and_delete(self, client):
        cluster = self.create_cluster(client)
        url = f"{API}/dashboard/clusters/{cluster['id']}"

        resp = client.patch(url, json={"name": "Renamed"}, headers=SESSION_HEADERS)
        assert resp.json()["cluster"]["name"] == "Renamed"
        assert client.patch(url, json={}, headers=SESSION_HEADERS).status_code == 400

        assert client.delete(url, headers=SESSION_HEADERS).status_code == 200
        resp = client.get(url, headers=SESSION_HEADERS)
        assert resp.status_code == 404
        assert "Cluster not found" in resp.json()["error"]

    def test_clear_all(self, client):
        self.create_cluster(client)
        self.create_cluster(client, name="Second")
        body = client.delete(f"{API}/dashboard/clusters", headers=SESSION_HEADERS).json()
        assert body["clusters_deleted"] == 2

    def test_available_urls(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)

        body = connected_client.get(f"{API}/dashboard/clusters/available-urls", params={"siteUrl": SITE}).json()
        assert body["urls"] == [
            "https://example.com/links",
            "https://example.com/rank",
            "https://example.com/tools",
        ]

    def test_summary_chart_and_url_breakdown(self, connected_client):
        import_gsc(connected_client)
        import_ahrefs(connected_client)
        cluster = self.create_cluster(connected_client)

        body = dashboard_body()
        body["metrics"] = ["clicks"]
        resp = connected_client.post(
            f"{API}/dashboard/clusters/{cluster['id']}/summary", json=body, headers=SESSION_HEADERS
        ).json()

        assert resp["summary"]["total_clicks"] == 26
        assert resp["summary"]["total_impressions"] == 160
        assert resp["summary"]["total_volume"] == 1200
        assert resp["summary"]["total_traffic"] == 90
        assert [point["clicks"] for point in resp["series"]] == [6, 20]

        tools, rank = resp["urls"]
        assert tools["url"] == "https://example.com/tools"
        assert tools["summary"]["total_clicks"] == 18
        assert tools["rows"][0]["query"] == "seo tools"
        assert rank["url"] == "/rank"
        assert rank["summary"]["total_clicks"] == 8

    def test_summary_selected_urls_and_comparison(self, connected_client):
        import_gsc(connected_client)
        cluster = self.create_cluster(connected_client)
        path = f"{API}/dashboard/clusters/{cluster['id']}/summary"

        body = dashboard_body()
        body["urls"] = ["/rank"]
        resp = connected_client.post(path, json=body, headers=SESSION_HEADERS).json()
        assert resp["selected_urls"] == ["/rank"]
        assert resp["summary"]["total_clicks"] == 8

        body = dashboard_body(enableComparison=True, comparisonDateRange={"startDate": "2024-01-02", "endDate": "2024-01-02"})
        resp = connected_client.post(path, json=body, headers=SESSION_HEADERS).json()
        assert resp["previous_summary"]["total_clicks"] == 20
        assert resp["trends"]["clicks"]["change_pct"] == 30.0

    def test_summary_unknown_url_is_400(self, client):
        cluster = self.create_cluster(client)
        body = dashboard_body()
        body["urls"] = ["https://example.com/other"]
        resp = client.post(f"{API}/dashboard/clusters/{cluster['id']}/summary", json=body, headers=SESSION_HEADERS)
        assert resp.status_code == 400
