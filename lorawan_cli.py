#!/usr/bin/env python

import os
import sys
import logging
from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter
import yaml
from lorawan_a2b_hex import a2b_hex, b2a_hex, reverse_bytes
from lorawan_fcnt import FrameCounterContext
from lorawan_keys import session_keys, MicParams11
from lorawan_parser import (DataFrame, JoinRequestFrame, JoinAcceptFrame,
                            CFListFrequencies)
from lorawan_verifier import decode
from lorawan_cipher import UP_LINK

logger = logging.getLogger(__name__)

KEY_OPTIONS = ["appkey", "nwkskey", "appskey",
               "fnwksintkey", "snwksintkey", "nwksenckey"]
CONTEXT_OPTIONS = ["fcnt_up", "afcnt_down", "nfcnt_down",
                   "conf_fcnt", "txdr", "txch"]
ENV_PREFIX = "LORAWAN_"

BUILT_IN_DEFAULTS = {
    "version": "1.0",
    "string_type": "hexstr",
}

#====

def formx(v, form=None):
    """
    convert a value into a string with a type of value.
    """
    if isinstance(v, int) and form == "hz":
        return "{:.1f} MHz ({} Hz)".format(v/1000000, v)
    elif isinstance(v, int) and form == "bin":
        return "b {:016b}".format(v)
    elif isinstance(v, bool):
        return "1" if v else "0"
    elif isinstance(v, int):
        return "x {:02x}".format(v)
    elif isinstance(v, (bytes,bytearray)):
        return "x {}".format(b2a_hex(v))
    else:
        raise ValueError("ERROR: unsupported arg for formx, {} type={}"
                         .format(v,type(v)))

def ascii_text(data):
    return "".join([chr(b) if 32 <= b <= 126 else "." for b in data])

class Report():
    """
    print a decoded frame in the form of:
        ## tag : value
          tag : value [wire value]
    the wire value is printed in verbose mode only.
    """
    def __init__(self, verbose=False, fd=None):
        self.verbose = verbose
        self.fd = fd if fd is not None else sys.stdout

    def print_vt(self, tag, v_wire=None, indent=0):
        bullet = " "*(2*indent) + "#"*(2+indent)
        line = "{} {}".format(bullet, tag)
        if v_wire not in ["", None]:
            line += " : {}".format(v_wire)
        print(line, file=self.fd)

    def print_v(self, tag, v_host=None, v_wire=None, indent=1):
        line = "{}{}".format("  "*indent, tag)
        if v_host not in ["", None]:
            line += " : {}".format(v_host)
        if self.verbose and v_wire not in ["", None]:
            line += " [{}]".format(v_wire)
        print(line, file=self.fd)

    def print_header(self, mhdr_o):
        self.print_vt("MHDR", formx(mhdr_o.mhdr))
        self.print_v("MType", mhdr_o.name, formx(mhdr_o.mtype.value))
        self.print_v("Major", "LoRaWAN R1" if mhdr_o.major == 0 else "RFU",
                     formx(mhdr_o.major))

    def print_join_request(self, frame):
        self.print_vt("JoinReq")
        self.print_v("JoinEUI", formx(reverse_bytes(frame.joineui)),
                     formx(frame.joineui))
        self.print_v("DevEUI", formx(reverse_bytes(frame.deveui)),
                     formx(frame.deveui))
        self.print_v("DevNonce", frame.devnonce,
                     formx(frame.devnonce.to_bytes(2, "little")))

    def print_join_accept(self, frame, ja):
        self.print_vt("JoinAccept", formx(frame.encrypted))
        if ja is None:
            return
        body = ja.body
        self.print_v("Decrypted", formx(ja.decrypted))
        self.print_v("JoinNonce", body.joinnonce, formx(body.fields[0:3]))
        self.print_v("NetID", formx(body.netid.to_bytes(3, "big")),
                     formx(body.fields[3:6]))
        self.print_v("DevAddr", formx(reverse_bytes(body.devaddr)),
                     formx(body.devaddr))
        self.print_v("DLSettings", formx(body.dlsettings))
        self.print_v("RX1DROffset", body.rx1droffset, indent=2)
        self.print_v("RX2DataRate", body.rx2datarate, indent=2)
        self.print_v("RxDelay", body.rxdelay)
        if body.cflist is None:
            return
        if isinstance(body.cflist, CFListFrequencies):
            self.print_v("CFList", "Frequencies")
            for freq in body.cflist.frequencies:
                self.print_v("CF", formx(freq, "hz"), indent=2)
        else:
            self.print_v("CFList", "ChMasks")
            for mask in body.cflist.masks:
                self.print_v("ChMask", formx(mask, "bin"), indent=2)

    def print_data_frame(self, frame, payload_o):
        self.print_vt("MACPayload", formx(frame.msg[1:]))
        self.print_v("Direction",
                     "uplink" if frame.msg_dir == UP_LINK else "downlink")
        self.print_v("DevAddr", formx(reverse_bytes(frame.devaddr)),
                     formx(frame.devaddr))
        self.print_v("FCtrl", formx(frame.fctrl))
        for name, bit in frame.flags.items():
            self.print_v(name, formx(bit), indent=2)
        self.print_v("FOptsLen", len(frame.fopts), indent=2)
        self.print_v("FCnt", frame.fcnt, formx(frame.fcnt.to_bytes(2, "little")))
        if frame.fopts:
            self.print_v("FOpts", formx(frame.fopts))
        if frame.fport is None:
            return
        self.print_v("FPort", frame.fport)
        self.print_vt("FRMPayload", formx(frame.frm_payload))
        if payload_o is None:
            return
        tag = "MAC Commands" if frame.fport == 0 else "AppData"
        self.print_v(tag, formx(payload_o.plaintext))
        self.print_v("ASCII", '"{}"'.format(ascii_text(payload_o.plaintext)))
        self.print_v("Key used", payload_o.key_role)
        self.print_v("FCnt used", payload_o.counter.fcnt,
                     payload_o.counter.domain.value)

    def print_mic(self, frame, mic_o):
        received = mic_o.received if mic_o else getattr(frame, "mic", None)
        self.print_vt("MIC")
        if received is not None:
            self.print_v("MIC in frame", formx(received))
        if mic_o is None:
            return
        self.print_v("MIC Derived", formx(mic_o.computed))
        self.print_v("MIC check", "OK" if mic_o.valid else "NG")
        if mic_o.valid or mic_o.counter is None:
            if not mic_o.valid:
                self.print_v("Hint", "the key might be wrong.")
            return
        counter = mic_o.counter
        self.print_v("Packet FCnt", counter.packet_fcnt)
        self.print_v("MIC FCnt", counter.fcnt, counter.domain.value)
        if counter.context_provided:
            self.print_v("Hint", "the key or the {} context might be wrong."
                         .format(counter.domain.value))
        else:
            self.print_v("Hint", "the key might be wrong, or try to give "
                         "the {} context.".format(counter.domain.value))

    def print_result(self, result):
        frame = result.frame
        print("=== PHYPayload ===", file=self.fd)
        if self.verbose:
            self.print_v("PDU", formx(frame.phy_pdu))
        self.print_header(frame.mhdr)
        if isinstance(frame, JoinRequestFrame):
            self.print_join_request(frame)
        elif isinstance(frame, JoinAcceptFrame):
            self.print_join_accept(frame, result.join_accept)
        elif isinstance(frame, DataFrame):
            self.print_data_frame(frame, result.payload)
        self.print_mic(frame, result.mic)

#====

def _int(v):
    return int(v, 0) if isinstance(v, str) else v

def load_config(opt, environ=None):
    """
    fill the options not given in the command line.
    precedence: built-in defaults < environment < keys file < command line.
    """
    if environ is None:
        environ = os.environ
    file_conf = {}
    if opt.keys_file:
        try:
            with open(opt.keys_file) as fd:
                file_conf = yaml.safe_load(fd) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError("can't read {}, {}".format(opt.keys_file, e)) from e
        if not isinstance(file_conf, dict):
            raise ValueError("{} must be a mapping.".format(opt.keys_file))
        file_conf = {str(k).lower().replace("-", "_"): v
                     for k, v in file_conf.items()}
    names = KEY_OPTIONS + CONTEXT_OPTIONS + list(BUILT_IN_DEFAULTS)
    for name in names:
        if getattr(opt, name) is not None:
            continue
        if name in file_conf:
            v = file_conf[name]
        elif ENV_PREFIX + name.upper() in environ:
            v = environ[ENV_PREFIX + name.upper()]
        else:
            v = BUILT_IN_DEFAULTS.get(name)
        if name in CONTEXT_OPTIONS and v is not None:
            v = _int(v)
        elif v is not None:
            v = str(v)
        setattr(opt, name, v)
    logger.debug("options: %s", {k: getattr(opt, k) for k in names
                                 if k not in KEY_OPTIONS})
    return opt

def build_parser():
    ap = ArgumentParser(
            description="""
            LoRaWAN PHY Payload decoder.
            It verifies the MIC and decrypts the payload
            of LoRaWAN 1.0.x and 1.1 frames.
            The input must be hex strings.
            You can use stdin to pass the string.
            """,
            formatter_class=ArgumentDefaultsHelpFormatter)
    ap.add_argument("phy_pdu", metavar="PHY_PDU_HEXSTR", type=str, nargs='*',
                    help="a series or multiple of hex string.")
    ap.add_argument("--lorawan-version", action="store", dest="version",
                    choices=["1.0", "1.1"],
                    help="specify the version of LoRaWAN; 1.0 or 1.1. "
                    "default is 1.0.")
    # required to decode Join-Request and Join-Accept.
    ap.add_argument("--appkey", "--AppKey", action="store", dest="appkey",
                    help="specify AppKey.")
    # v1.0.x session keys.
    ap.add_argument("--nwkskey", "--NwkSKey", action="store", dest="nwkskey",
                    help="specify NwkSKey(v1.0.x).")
    ap.add_argument("--appskey", "--AppSKey", action="store", dest="appskey",
                    help="specify AppSKey.")
    # v1.1 session keys.
    ap.add_argument("--fnwksintkey", "--FNwkSIntKey", action="store",
                    dest="fnwksintkey", help="specify FNwkSIntKey(v1.1).")
    ap.add_argument("--snwksintkey", "--SNwkSIntKey", action="store",
                    dest="snwksintkey", help="specify SNwkSIntKey(v1.1).")
    ap.add_argument("--nwksenckey", "--NwkSEncKey", action="store",
                    dest="nwksenckey", help="specify NwkSEncKey(v1.1).")
    # frame counter context.
    ap.add_argument("--fcnt-up", action="store", dest="fcnt_up", type=_int,
                    help="specify the last known 32-bit FCntUp.")
    ap.add_argument("--afcnt-down", action="store", dest="afcnt_down",
                    type=_int,
                    help="specify the last known 32-bit AFCntDown(v1.1).")
    ap.add_argument("--nfcnt-down", "--fcnt-down", action="store",
                    dest="nfcnt_down", type=_int,
                    help="specify the last known 32-bit NFCntDown, "
                    "or FCntDown of v1.0.x.")
    # v1.1 MIC parameters.
    ap.add_argument("--conf-fcnt", action="store", dest="conf_fcnt",
                    type=_int,
                    help="specify ConfFCnt, required if the ACK bit is set.")
    ap.add_argument("--txdr", action="store", dest="txdr", type=_int,
                    help="specify TxDR, required for v1.1 uplink.")
    ap.add_argument("--txch", action="store", dest="txch", type=_int,
                    help="specify TxCH, required for v1.1 uplink.")
    #
    ap.add_argument("--keys-file", action="store", dest="keys_file",
                    help="specify a YAML file holding the keys and context.")
    ap.add_argument("--from-file", action="store", dest="from_file",
                    help="specify a file or stdin to read the messages.")
    ap.add_argument("--string-type", action="store", dest="string_type",
                    choices=["hexstr", "base64"],
                    help="""specify the type of string of phy_pdu,
                    either hexstr or base64. default is hexstr.""")
    ap.add_argument("-v", action="store_true", dest="verbose",
                    help="enable verbose mode.")
    ap.add_argument("-d", action="append_const", dest="_f_debug", default=[],
                    const=1, help="increase debug mode.")
    return ap

def decode_one(phy_hex, opt, report):
    keys = session_keys(opt.version,
                        **{k: a2b_hex(getattr(opt, k)) for k in KEY_OPTIONS})
    context = FrameCounterContext(fcnt_up=opt.fcnt_up,
                                  afcnt_down=opt.afcnt_down,
                                  nfcnt_down=opt.nfcnt_down)
    params = MicParams11(conf_fcnt=opt.conf_fcnt, txdr=opt.txdr,
                         txch=opt.txch)
    result = decode(a2b_hex(phy_hex, string_type=opt.string_type),
                    appkey=a2b_hex(opt.appkey), keys=keys, context=context,
                    params=params)
    report.print_result(result)
    return result

def main(argv=None):
    ap = build_parser()
    opt = ap.parse_args(argv)
    opt.debug_level = len(opt._f_debug)
    logging.basicConfig(
            format="%(levelname)s: %(name)s: %(message)s",
            level=(logging.DEBUG if opt.debug_level else
                   logging.INFO if opt.verbose else logging.WARNING))
    try:
        load_config(opt)
    except ValueError as e:
        print("ERROR: {}".format(e), file=sys.stderr)
        return 1
    report = Report(verbose=opt.verbose)

    if opt.from_file:
        if opt.from_file in ["-", "stdin"]:
            lines = sys.stdin.read().splitlines()
        else:
            with open(opt.from_file) as fd:
                lines = fd.read().splitlines()
        messages = [line for line in lines if line.strip()]
    elif len(opt.phy_pdu) == 0:
        ap.print_help()
        return 0
    else:
        messages = [opt.phy_pdu]

    status = 0
    for msg in messages:
        try:
            decode_one(msg, opt, report)
        except ValueError as e:
            # LoRaWANError and the range errors of the options.
            print("ERROR: {}".format(e), file=sys.stderr)
            status = 1
    return status

if __name__ == "__main__":
    sys.exit(main())
