from __future__ import annotations

import asyncio
import logging
import socket

import pandas as pd
import pytest

from gatewaypy import Client, ClientConfig
from gatewaypy.accounts import PnL
from gatewaypy.errors import (
    AlreadySubscribed,
    ConnectionFailed,
    ConnectionReset,
    DecodeError,
    ServerError,
    ServerVersionUnsupported,
)
from gatewaypy.news import NewsBulletin, decode_news_bulletin
from gatewaypy.protocol.messages import IncomingMessage, OutgoingMessage
from gatewaypy.protocol.wire import RequestMessage
from gatewaypy.transport.connection import Connection, ConnectionState
from gatewaypy.transport.recorder import FileRecorder
from gatewaypy.transport.subscription import SubscriptionState
from tests.fake_gateway import FakeGateway

ACCOUNT = "DU1234567"
EXECUTION_ID = "0000e0d5.6543.01.01"


def _config(gateway: FakeGateway, **kwargs) -> ClientConfig:
    kwargs.setdefault("connect_timeout", 2.0)
    kwargs.setdefault("handshake_timeout", 2.0)
    kwargs.setdefault("reconnect_delay", 0.01)
    return ClientConfig(port=gateway.port, **kwargs)


def _answer_current_time(gateway: FakeGateway) -> None:
    gateway.responders[OutgoingMessage.REQUEST_CURRENT_TIME] = lambda fields: ["49|1|1680733239|"]


def test_handshake():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway, client_id=7))
            try:
                assert client.is_connected
                assert client.server_version == 178
                assert client.connection_time == pd.Timestamp("2023-04-05 22:20:39", tz="America/Los_Angeles")
                assert client.time_zone == "America/Los_Angeles"
                assert client.managed_account_list == ["DU1234567", "DU7654321"]
                assert client.account_info.next_order_id == 90
                assert client.next_order_id() == 90
                assert client.next_order_id() == 91
                assert client.next_request_id() == 9000
            finally:
                await client.disconnect()
            assert not client.is_connected
            assert gateway.prefix == b"API\0"
            assert gateway.version_range == "v100..178"
            assert gateway.start_api == ["71", "2", "7", ""]

    asyncio.run(scenario())


def test_start_api_without_optional_capabilities():
    async def scenario():
        async with FakeGateway(server_version=71) as gateway:
            client = await Client.connect(_config(gateway, min_version=70))
            try:
                assert client.server_version == 71
            finally:
                await client.disconnect()
            assert gateway.version_range == "v70..178"
            assert gateway.start_api == ["71", "2", "0"]

    asyncio.run(scenario())


def test_startup_frames_go_to_callback():
    seen = []

    async def scenario():
        gateway = FakeGateway(handshake_frames=["58|1|9000|3|"])
        async with gateway:
            client = await Client.connect(_config(gateway, startup_callback=seen.append))
            await client.disconnect()

    asyncio.run(scenario())
    assert [m.fields for m in seen] == [["58", "1", "9000", "3"]]


def test_server_below_minimum_version():
    async def scenario():
        async with FakeGateway(server_version=99) as gateway:
            with pytest.raises(ConnectionFailed):
                await Client.connect(_config(gateway))

    asyncio.run(scenario())


def test_connect_refused():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]

    async def scenario():
        with pytest.raises(ConnectionFailed):
            await Client.connect(ClientConfig(port=port, connect_timeout=2.0))

    asyncio.run(scenario())


def test_one_shot_requests():
    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            gateway.responders[OutgoingMessage.REQUEST_MANAGED_ACCOUNTS] = lambda fields: ["15|1|ACC1,ACC2|"]
            gateway.responders[OutgoingMessage.REQUEST_IDS] = lambda fields: ["9|1|500|"]
            client = await Client.connect(_config(gateway))
            try:
                assert await client.server_time() == pd.Timestamp("2023-04-05 22:20:39", tz="UTC")
                assert await client.managed_accounts() == ["ACC1", "ACC2"]
                assert await client.next_valid_order_id() == 500
                assert client.next_order_id() == 500
            finally:
                await client.disconnect()
            assert gateway.frames_of_type(49) == [["49", "1"]]
            assert gateway.frames_of_type(8) == [["8", "1", "0"]]

    asyncio.run(scenario())


def test_pnl_routing_by_request_id():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                first = await client.pnl(ACCOUNT)
                second = await client.pnl(ACCOUNT, "TARGET2024")
                await gateway.wait_for_frames(2)
                assert gateway.frames_of_type(92) == [
                    ["92", "9000", ACCOUNT, ""],
                    ["92", "9001", ACCOUNT, "TARGET2024"],
                ]

                gateway.send("94|9001|2.0|20.0|200.0|")
                gateway.send("94|9000|1.0|10.0|100.0|")
                assert await first.next(timeout=2) == PnL(1.0, 10.0, 100.0)
                assert await second.next(timeout=2) == PnL(2.0, 20.0, 200.0)
                assert first.state == SubscriptionState.STREAMING
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_cancel_sends_one_cancel_and_drops_late_frames():
    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            client = await Client.connect(_config(gateway))
            try:
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)
                await subscription.cancel()
                await subscription.cancel()
                await gateway.wait_for_frames(2)

                gateway.send(f"94|{subscription.request_id}|1.0|2.0|3.0|")
                # a round trip guarantees the late frame has been dispatched
                await client.server_time()

                assert await subscription.next(timeout=1) is None
                assert subscription.state == SubscriptionState.CANCELLED
                assert gateway.frames_of_type(93) == [["93", str(subscription.request_id)]]
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_timeout_leaves_subscription_open():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                subscription = await client.pnl(ACCOUNT)
                with pytest.raises(asyncio.TimeoutError):
                    await subscription.next(timeout=0.05)
                assert not subscription.done

                gateway.send(f"94|{subscription.request_id}|1.5|||")
                assert await subscription.next(timeout=2) == PnL(1.5, None, None)
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_connection_drop_fails_open_subscriptions():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway, reconnect_attempts=0))
            try:
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)
                gateway.drop()

                with pytest.raises(ConnectionReset):
                    await subscription.next(timeout=2)
                # the error is sticky
                with pytest.raises(ConnectionReset):
                    await subscription.next(timeout=1)
                assert subscription.state == SubscriptionState.FAILED
                assert not client.is_connected

                with pytest.raises(ConnectionReset):
                    await client.pnl(ACCOUNT)
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_shutdown_frame_closes_connection():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                news = await client.news_bulletins()
                await gateway.wait_for_frames(1)
                gateway.send("-2|")

                with pytest.raises(ConnectionReset):
                    await news.next(timeout=2)
                with pytest.raises(ConnectionReset):
                    await client.send_message(RequestMessage([OutgoingMessage.REQUEST_CURRENT_TIME, 1]))
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_disconnect_fails_open_subscriptions():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            subscription = await client.pnl(ACCOUNT)
            await client.disconnect()
            with pytest.raises(ConnectionReset, match="closed by client"):
                await subscription.next(timeout=1)

    asyncio.run(scenario())


def test_news_is_fanned_out_to_every_subscriber():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                bulletins = await client.news_bulletins(all_messages=False)
                listener = client.subscribe_broadcast((IncomingMessage.NEWS_BULLETINS,), decode_news_bulletin)
                await gateway.wait_for_frames(1)
                assert gateway.frames_of_type(12) == [["12", "1", "0"]]

                gateway.send("14|1|2|1|Trading halted in XYZ|NYSE|")
                expected = NewsBulletin(2, 1, "Trading halted in XYZ", "NYSE")
                assert await bulletins.next(timeout=2) == expected
                assert await listener.next(timeout=2) == expected

                await bulletins.cancel()
                await gateway.wait_for_frames(2)
                assert gateway.frames_of_type(13) == [["13", "1"]]
                assert not listener.done
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_error_for_request_fails_that_request_only():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                failing = await client.pnl(ACCOUNT)
                healthy = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(2)

                gateway.send(f"4|2|{failing.request_id}|321|Error validating request|")
                with pytest.raises(ServerError) as excinfo:
                    await failing.next(timeout=2)
                assert excinfo.value.code == 321
                assert excinfo.value.request_id == failing.request_id

                gateway.send(f"94|{healthy.request_id}|1.0|2.0|3.0|")
                assert await healthy.next(timeout=2) == PnL(1.0, 2.0, 3.0)
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_warnings_become_notices():
    received = []

    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway, notice_callback=received.append))
            try:
                notices = client.notices()
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)

                gateway.send(f"4|2|{subscription.request_id}|2104|Market data farm connection is OK:usfarm|")
                notice = await notices.next(timeout=2)
                assert notice.code == 2104
                assert notice.is_warning
                assert str(notice) == "[2104] Market data farm connection is OK:usfarm"
                assert not subscription.done

                gateway.send("4|2|-1|1100|Connectivity between IB and TWS has been lost.|")
                notice = await notices.next(timeout=2)
                assert notice.code == 1100
                assert not notice.is_warning
            finally:
                await client.disconnect()

    asyncio.run(scenario())
    assert [n.code for n in received] == [2104, 1100]


def test_pnl_requires_server_support():
    async def scenario():
        async with FakeGateway(server_version=126) as gateway:
            _answer_current_time(gateway)
            client = await Client.connect(_config(gateway))
            try:
                with pytest.raises(ServerVersionUnsupported) as excinfo:
                    await client.pnl(ACCOUNT)
                assert excinfo.value.server_version == 126
                await client.server_time()
                assert gateway.frames_of_type(92) == []
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_order_messages_follow_order_and_execution_ids():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                order_id = client.next_order_id()
                order = await client.send_order_request(
                    order_id, RequestMessage([OutgoingMessage.PLACE_ORDER, order_id, "AAPL", "BUY", 1])
                )
                updates = client.subscribe_order_updates()
                with pytest.raises(AlreadySubscribed):
                    client.subscribe_order_updates()
                await gateway.wait_for_frames(1)

                execution = ["11", "-1", str(order_id)] + [""] * 11 + [EXECUTION_ID, "20230405 10:00:00"]
                gateway.send(f"3|{order_id}|Filled|1|0|101.5|12345|0|101.5|0||0|")
                gateway.send("|".join(execution) + "|")
                gateway.send(f"59|1|{EXECUTION_ID}|1.25|USD|||0|")

                routed = [await order.next(timeout=2) for _ in range(3)]
                assert [m.message_type for m in routed] == [
                    IncomingMessage.ORDER_STATUS,
                    IncomingMessage.EXECUTION_DATA,
                    IncomingMessage.COMMISSIONS_REPORT,
                ]
                streamed = [await updates.next(timeout=2) for _ in range(3)]
                assert [m.fields for m in streamed] == [m.fields for m in routed]

                with pytest.raises(AlreadySubscribed):
                    await client.send_order_request(order_id, RequestMessage([OutgoingMessage.PLACE_ORDER, order_id]))
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_duplicate_request_id_is_rejected():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                await client.send_request(9999, RequestMessage([OutgoingMessage.REQUEST_PNL, 9999, ACCOUNT, ""]))
                with pytest.raises(AlreadySubscribed):
                    await client.send_request(9999, RequestMessage([OutgoingMessage.REQUEST_PNL, 9999, ACCOUNT, ""]))
                with pytest.raises(ValueError):
                    await client.send_broadcast_request(
                        OutgoingMessage.REQUEST_PNL, RequestMessage([OutgoingMessage.REQUEST_PNL])
                    )
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_traffic_is_recorded(tmp_path):
    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            recorder = FileRecorder(tmp_path)
            client = await Client.connect(_config(gateway, recorder=recorder))
            try:
                await client.server_time()
            finally:
                await client.disconnect()
            return recorder

    recorder = asyncio.run(scenario())
    texts = [p.read_text() for p in sorted(recorder.path.iterdir())]
    assert "71|2|0||" in texts
    assert "49|1|" in texts
    assert "49|1|1680733239|" in texts


def test_config_from_address():
    cfg = ClientConfig.from_address("gateway.local:7497", client_id=3)
    assert (cfg.host, cfg.port, cfg.client_id) == ("gateway.local", 7497, 3)
    with pytest.raises(ValueError):
        ClientConfig.from_address("gateway.local")
    with pytest.raises(ValueError):
        ClientConfig.from_address("gateway.local:port")


def test_failing_startup_callback_does_not_break_handshake():
    def callback(message):
        raise RuntimeError("callback bug")

    async def scenario():
        async with FakeGateway(handshake_frames=["58|1|9000|3|"]) as gateway:
            client = await Client.connect(_config(gateway, startup_callback=callback))
            try:
                assert client.is_connected
                assert client.account_info.next_order_id == 90
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_cancelled_handshake_closes_the_socket():
    async def silent(reader, writer):
        await reader.read()
        writer.close()

    async def scenario():
        server = await asyncio.start_server(silent, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        connection = Connection(ClientConfig(port=port, handshake_timeout=10.0))
        try:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(connection.connect(), 0.2)
            assert connection.state == ConnectionState.CLOSED
        finally:
            server.close()

    asyncio.run(scenario())


def test_end_marker_completes_request_stream():
    request = RequestMessage([OutgoingMessage.REQUEST_CONTRACT_DATA, 8, 9000, "AAPL"])

    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            gateway.responders[OutgoingMessage.REQUEST_CONTRACT_DATA] = lambda fields: [
                "10|9000|AAPL|",
                "52|1|9000|",
            ]
            client = await Client.connect(_config(gateway))
            try:
                details = await client.send_request(9000, request)
                assert [m.fields for m in await details.collect(timeout=2)] == [["10", "9000", "AAPL"]]
                assert details.state == SubscriptionState.COMPLETED

                gateway.send("10|9000|MSFT|")
                await client.server_time()
                assert await details.next(timeout=1) is None

                # the request id is free again once the stream has ended
                again = await client.send_request(9000, request)
                assert len(await again.collect(timeout=2)) == 1
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_undecodable_frame_is_skipped_by_streams_and_fails_one_shots():
    async def scenario():
        async with FakeGateway() as gateway:
            gateway.responders[OutgoingMessage.REQUEST_CURRENT_TIME] = lambda fields: ["49|1|notanumber|"]
            client = await Client.connect(_config(gateway))
            try:
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)

                gateway.send(f"94|{subscription.request_id}|abc|||")
                gateway.send(f"94|{subscription.request_id}|1.0|2.0|3.0|")
                assert await subscription.next(timeout=2) == PnL(1.0, 2.0, 3.0)
                assert subscription.state == SubscriptionState.STREAMING

                with pytest.raises(DecodeError):
                    await client.server_time()
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_position_end_completes_every_subscriber():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                requested = await client.send_broadcast_request(
                    OutgoingMessage.REQUEST_POSITIONS, RequestMessage([OutgoingMessage.REQUEST_POSITIONS, 1])
                )
                listener = client.subscribe_broadcast((IncomingMessage.POSITION, IncomingMessage.POSITION_END))
                await gateway.wait_for_frames(1)

                gateway.send(f"61|3|{ACCOUNT}|265598|AAPL|100|")
                gateway.send("62|1|")
                for subscription in (requested, listener):
                    positions = await subscription.collect(timeout=2)
                    assert [m.fields for m in positions] == [["61", "3", ACCOUNT, "265598", "AAPL", "100"]]
                    assert subscription.state == SubscriptionState.COMPLETED
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_bad_timestamp_fails_only_its_request():
    async def scenario():
        async with FakeGateway() as gateway:
            gateway.responders[OutgoingMessage.REQUEST_CURRENT_TIME] = lambda fields: [
                "49|1|1000000000000000000000000000000|"
            ]
            client = await Client.connect(_config(gateway))
            try:
                subscription = await client.pnl(ACCOUNT)
                with pytest.raises(DecodeError):
                    await client.server_time()

                gateway.send(f"94|{subscription.request_id}|1.0|2.0|3.0|")
                assert await subscription.next(timeout=2) == PnL(1.0, 2.0, 3.0)
                assert client.is_connected
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_decoder_failure_does_not_stop_dispatch():
    def broken(message, server_version):
        raise RuntimeError("decoder bug")

    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway))
            try:
                client.subscribe_broadcast((IncomingMessage.NEWS_BULLETINS,), broken)
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)

                gateway.send("14|1|2|1|Trading halted in XYZ|NYSE|")
                gateway.send(f"94|{subscription.request_id}|1.0|2.0|3.0|")
                assert await subscription.next(timeout=2) == PnL(1.0, 2.0, 3.0)
                assert client.is_connected
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_reconnects_after_drop():
    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            client = await Client.connect(_config(gateway))
            try:
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)
                gateway.next_order_id = 120
                gateway.drop()

                # subscriptions are not resumed on the new connection
                with pytest.raises(ConnectionReset):
                    await subscription.next(timeout=2)
                assert client.is_connected
                assert client.next_order_id() == 120
                assert await client.server_time() == pd.Timestamp("2023-04-05 22:20:39", tz="UTC")
                assert gateway.frames_of_type(49) == [["49", "1"]]
            finally:
                await client.disconnect()
            assert not client.is_connected

    asyncio.run(scenario())


def test_one_shot_is_retried_on_the_new_connection():
    async def scenario():
        async with FakeGateway() as gateway:
            calls = []

            def drop_first_request(fields):
                calls.append(fields)
                if len(calls) == 1:
                    gateway.drop()
                    return []
                return ["49|1|1680733239|"]

            gateway.responders[OutgoingMessage.REQUEST_CURRENT_TIME] = drop_first_request
            client = await Client.connect(_config(gateway))
            try:
                assert await client.server_time() == pd.Timestamp("2023-04-05 22:20:39", tz="UTC")
                assert len(gateway.frames_of_type(49)) == 2
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_gives_up_when_gateway_stays_down():
    async def scenario():
        async with FakeGateway() as gateway:
            client = await Client.connect(_config(gateway, reconnect_attempts=2))
            try:
                subscription = await client.pnl(ACCOUNT)
                await gateway.wait_for_frames(1)
                await gateway.stop()

                with pytest.raises(ConnectionReset):
                    await subscription.next(timeout=2)
                assert not client.is_connected
                with pytest.raises(ConnectionReset):
                    await client.pnl(ACCOUNT)
            finally:
                await client.disconnect()

    asyncio.run(scenario())


def test_dropped_frames_are_logged_with_field_names(caplog):
    caplog.set_level(logging.INFO, logger="gatewaypy.transport.bus")

    async def scenario():
        async with FakeGateway() as gateway:
            _answer_current_time(gateway)
            client = await Client.connect(_config(gateway))
            try:
                gateway.send("94|9999|1.0|2.0|3.0|")
                await client.server_time()
            finally:
                await client.disconnect()

    asyncio.run(scenario())
    assert "no consumer for" in caplog.text
    assert "'DailyPnL': 1.0" in caplog.text
