# Frame counter resolution.
#
# Only the 16 least significant bits of FCnt travel on the wire.  The MIC and
# the payload cipher both need the full 32-bit counter, so the upper half is
# recovered from the last value known to the caller (the context).
#
# The rollover rule is a heuristic.  It assumes at most one 16-bit wrap since
# the context was recorded, and it cannot tell a genuine wrap apart from a
# replayed or reordered frame whose counter is more than 32768 behind.

import enum
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

FCNT_ROLLOVER_GAP = 32768

class CounterDomain(enum.Enum):
    UPLINK = "FCntUp"
    APP_DOWNLINK = "AFCntDown"
    NWK_DOWNLINK = "NFCntDown"

@dataclass(frozen=True)
class FrameCounterContext:
    """
    the last known 32-bit counters, owned by the caller.
    a LoRaWAN 1.0.x device has a single FCntDown, kept in nfcnt_down.
    """
    fcnt_up: Optional[int] = None
    afcnt_down: Optional[int] = None
    nfcnt_down: Optional[int] = None

    def __post_init__(self):
        for name in ["fcnt_up", "afcnt_down", "nfcnt_down"]:
            v = getattr(self, name)
            if v is not None and not 0 <= v <= 0xffffffff:
                raise ValueError("{} must be a 32-bit unsigned int, but {}"
                                 .format(name, v))

    def get(self, domain):
        return {
            CounterDomain.UPLINK: self.fcnt_up,
            CounterDomain.APP_DOWNLINK: self.afcnt_down,
            CounterDomain.NWK_DOWNLINK: self.nfcnt_down,
            }[domain]

@dataclass(frozen=True)
class ResolvedCounter:
    domain: CounterDomain
    packet_fcnt: int
    fcnt: int
    context_provided: bool

def resolve_fcnt(packet_fcnt, context=None):
    """
    expand the 16-bit FCnt in the frame into 32-bit.
        packet_fcnt: FCnt carried in the frame.
        context: the last known 32-bit FCnt, or None.
    """
    packet_lower = packet_fcnt & 0xffff
    if context is None:
        return packet_lower
    context_upper = (context >> 16) & 0xffff
    context_lower = context & 0xffff
    if (packet_lower < context_lower and
            context_lower - packet_lower > FCNT_ROLLOVER_GAP):
        context_upper += 1
    return ((context_upper << 16) | packet_lower) & 0xffffffff

def resolve_counter(domain, packet_fcnt, context=None):
    """
    resolve the FCnt of a frame against the counter of the domain.
        context: FrameCounterContext or None.
    """
    prior = context.get(domain) if context is not None else None
    fcnt = resolve_fcnt(packet_fcnt, prior)
    logger.debug("%s: packet FCnt=%d context=%s resolved=%d",
                 domain.value, packet_fcnt, prior, fcnt)
    return ResolvedCounter(domain=domain,
                           packet_fcnt=packet_fcnt & 0xffff,
                           fcnt=fcnt,
                           context_provided=prior is not None)
