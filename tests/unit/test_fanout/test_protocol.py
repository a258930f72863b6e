"""配信メッセージプロトコルテスト"""

from datetime import date

import pytest
from pydantic import ValidationError

from src.fanout.protocol import (
    CatalogEntry,
    GenerateRequest,
    InitialDataMessage,
    PingRequest,
    RequestMoreRequest,
    observer_request_adapter,
)


@pytest.mark.unit
class TestServerMessages:
    def test_initial_data_json(self) -> None:
        entry = CatalogEntry(
            id=1,
            cpu_model="Intel Core i7-13th 700",
            score=8000,
            nr_cores=8,
            clock_speed=3.2,
            manufacturing_date=date(2025, 5, 1),
            price_usd=350,
        )
        data = InitialDataMessage(data=[entry], total=1, has_more=False).model_dump(mode="json")
        assert data["type"] == "initial_data"
        assert data["data"][0]["manufacturing_date"] == "2025-05-01"


@pytest.mark.unit
class TestObserverRequests:
    def test_generate(self) -> None:
        request = observer_request_adapter.validate_json('{"type": "generate", "count": 3}')
        assert isinstance(request, GenerateRequest)
        assert request.count == 3

    def test_generate_without_count(self) -> None:
        request = observer_request_adapter.validate_python({"type": "generate"})
        assert isinstance(request, GenerateRequest)
        assert request.count is None

    def test_request_more(self) -> None:
        request = observer_request_adapter.validate_python({"type": "request_more", "start": 25, "limit": 10})
        assert isinstance(request, RequestMoreRequest)
        assert (request.start, request.limit) == (25, 10)

    def test_ping(self) -> None:
        assert isinstance(observer_request_adapter.validate_python({"type": "ping"}), PingRequest)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"type": "teleport"}',
            '{"count": 3}',
            '{"type": "generate", "count": 0}',
            '{"type": "request_more", "start": -1}',
        ],
    )
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            observer_request_adapter.validate_json(raw)
