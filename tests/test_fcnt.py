import pytest

from lorawan_fcnt import (resolve_fcnt, resolve_counter, CounterDomain,
                          FrameCounterContext)

@pytest.mark.parametrize("packet_fcnt, context, expected", [
    (0x1234, None, 0x1234),
    # no rollover
    (0x0050, 0x00010040, 0x00010050),
    # rollover, 0xfff0 - 0x0005 > 32768
    (0x0005, 0x0001fff0, 0x00020005),
    # behind, but not enough to assume a rollover.
    (0x0005, 0x00018005, 0x00010005),
    (0x0005, 0x00018006, 0x00020005),
    (0xffff, 0x00000000, 0x0000ffff),
    # the result is kept in 32-bit.
    (0x0001, 0xfffffff0, 0x00000001),
])
def test_resolve_fcnt(packet_fcnt, context, expected):
    assert resolve_fcnt(packet_fcnt, context) == expected

def test_resolve_counter_uses_domain_context():
    context = FrameCounterContext(fcnt_up=0x0001fff0, afcnt_down=0x00030000)
    up = resolve_counter(CounterDomain.UPLINK, 5, context)
    assert up.fcnt == 0x00020005
    assert up.packet_fcnt == 5
    assert up.context_provided
    app = resolve_counter(CounterDomain.APP_DOWNLINK, 7, context)
    assert app.fcnt == 0x00030007
    nwk = resolve_counter(CounterDomain.NWK_DOWNLINK, 7, context)
    assert nwk.fcnt == 7
    assert not nwk.context_provided

def test_context_is_not_modified():
    context = FrameCounterContext(fcnt_up=0x0001fff0)
    resolve_counter(CounterDomain.UPLINK, 5, context)
    assert context.fcnt_up == 0x0001fff0

def test_context_range():
    with pytest.raises(ValueError):
        FrameCounterContext(fcnt_up=0x100000000)
    with pytest.raises(ValueError):
        FrameCounterContext(nfcnt_down=-1)
