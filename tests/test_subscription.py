"""Tests for the WMI subscription wrapper (no Windows required)."""

import sys
from types import ModuleType, SimpleNamespace

import pytest

from eventlog_tail.errors import NativeCallError, SubscriptionError, SubscriptionLost
from eventlog_tail.subscription import (
    RPC_S_SERVER_UNAVAILABLE,
    WBEM_E_TIMED_OUT,
    WmiSubscription,
    build_wql_query,
    com_error_codes,
)

DISP_E_EXCEPTION = -2147352567


class FakeComError(Exception):
    """Shaped like pywintypes.com_error: (hresult, text, excepinfo, argerr)."""


def _com_error(hresult, scode=None):
    excepinfo = (0, "SWbemEventSource", "", None, 0, scode) if scode is not None else None
    return FakeComError(hresult, "Exception occurred.", excepinfo, None)


class FakeEventSource:
    def __init__(self, script):
        self._script = list(script)

    def NextEvent(self, timeout_ms):
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return SimpleNamespace(TargetInstance=item)


def _subscription(script, uninitialize=None):
    return WmiSubscription(FakeEventSource(script), "q", FakeComError, uninitialize)


class TestBuildWqlQuery:
    def test_default_logs(self):
        query = build_wql_query(["Application", "Security", "System"])
        assert query == (
            "Select * from __InstanceCreationEvent Where TargetInstance ISA "
            "'Win32_NTLogEvent' And (TargetInstance.LogFile = 'Application' OR "
            "TargetInstance.LogFile = 'Security' OR TargetInstance.LogFile = 'System')"
        )

    def test_single_log(self):
        query = build_wql_query(["System"])
        assert query.endswith("And (TargetInstance.LogFile = 'System')")
        assert " OR " not in query

    def test_each_name_once(self):
        query = build_wql_query(["System", "Security", "System"])
        assert query.count("'System'") == 1
        assert query.count(" OR ") == 1

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            build_wql_query([])


class TestComErrorCodes:
    def test_hresult_and_scode(self):
        assert com_error_codes(_com_error(DISP_E_EXCEPTION, WBEM_E_TIMED_OUT)) == {
            DISP_E_EXCEPTION, WBEM_E_TIMED_OUT,
        }

    def test_no_excepinfo(self):
        assert com_error_codes(_com_error(RPC_S_SERVER_UNAVAILABLE)) == {RPC_S_SERVER_UNAVAILABLE}


class TestWmiSubscription:
    def test_returns_target_instance(self):
        sub = _subscription(["event"])
        assert sub.next_event(1000) == "event"

    def test_timeout_returns_none(self):
        sub = _subscription([_com_error(DISP_E_EXCEPTION, WBEM_E_TIMED_OUT)])
        assert sub.next_event(1000) is None
        assert not sub.closed

    def test_other_com_error_is_native_failure(self):
        sub = _subscription([_com_error(DISP_E_EXCEPTION, -2147217407)])
        with pytest.raises(NativeCallError):
            sub.next_event(1000)
        assert not sub.closed

    def test_disconnect_closes_subscription(self):
        calls = []
        sub = _subscription([_com_error(RPC_S_SERVER_UNAVAILABLE)], lambda: calls.append(1))
        with pytest.raises(SubscriptionLost):
            sub.next_event(1000)
        assert sub.closed
        assert calls == [1]

    def test_closed_subscription_raises(self):
        sub = _subscription([])
        sub.close()
        with pytest.raises(SubscriptionLost):
            sub.next_event(1000)

    def test_close_is_idempotent(self):
        calls = []
        sub = _subscription([], lambda: calls.append(1))
        sub.close()
        sub.close()
        assert calls == [1]

    @pytest.mark.skipif(sys.platform == "win32", reason="pywin32 is installed on Windows")
    def test_open_without_pywin32_is_setup_failure(self):
        with pytest.raises(SubscriptionError) as exc_info:
            WmiSubscription.open(["System"])
        assert "TargetInstance.LogFile = 'System'" in exc_info.value.query


def _fake_pywin32(monkeypatch, co_initialize=None, get_object=None):
    """Install stand-in pythoncom / pywintypes / win32com modules."""
    calls = []
    pythoncom = ModuleType("pythoncom")
    pythoncom.CoInitialize = co_initialize or (lambda: calls.append("init"))
    pythoncom.CoUninitialize = lambda: calls.append("uninit")
    pywintypes = ModuleType("pywintypes")
    pywintypes.com_error = FakeComError
    client = ModuleType("win32com.client")
    client.GetObject = get_object
    win32com = ModuleType("win32com")
    win32com.client = client
    for name, module in (("pythoncom", pythoncom), ("pywintypes", pywintypes),
                         ("win32com", win32com), ("win32com.client", client)):
        monkeypatch.setitem(sys.modules, name, module)
    return calls


class TestWmiSubscriptionOpen:
    def test_com_init_failure_is_setup_failure(self, monkeypatch):
        def co_initialize():
            raise _com_error(-2147417850)

        _fake_pywin32(monkeypatch, co_initialize=co_initialize)
        with pytest.raises(SubscriptionError) as exc_info:
            WmiSubscription.open(["System"])
        assert "TargetInstance.LogFile = 'System'" in exc_info.value.query

    def test_connect_failure_uninitializes(self, monkeypatch):
        def get_object(moniker):
            raise OSError("no WMI")

        calls = _fake_pywin32(monkeypatch, get_object=get_object)
        with pytest.raises(SubscriptionError):
            WmiSubscription.open(["System"])
        assert calls == ["init", "uninit"]

    def test_opens_notification_query(self, monkeypatch):
        queries = []
        wmi = SimpleNamespace(
            ExecNotificationQuery=lambda q: queries.append(q) or FakeEventSource(["event"]))
        _fake_pywin32(monkeypatch, get_object=lambda moniker: wmi)

        sub = WmiSubscription.open(["Application", "System"])
        assert queries == [build_wql_query(["Application", "System"])]
        assert sub.next_event(1000) == "event"
