import pytest
from conftest import DEVICE_SVD, make_peripheral, make_register, make_svd

from periphview import (
    Access,
    InvalidEditValue,
    NodeKeyError,
    NodeSetting,
    NumberFormat,
    UnsupportedRegisterSize,
    parse,
)
from periphview.bits import extract_bits


def _uart_content() -> bytes:
    data = bytearray(0x20)
    data[0x0] = 0x01
    data[0x4] = 0xA7
    data[0x10:0x12] = b"\x34\x12"
    return bytes(data)


def test_labels_at_reset(register_map):
    uart = register_map["UART0"]

    assert uart.label == "UART0  [0x40002000]"
    assert uart["STATUS"].label == "STATUS [0x0] = 0x00000000"
    assert uart["CONFIG"].label == "CONFIG [0x4] = 0x00000005"
    assert uart["TXD"].label == "TXD [0x8] - <Write Only>"
    assert uart["DATA0"].label == "DATA0 [0x10] = 0x0000"
    assert uart["CONFIG"]["PARITY"].label == "PARITY[2:0] = 0b101"
    assert uart["CONFIG"]["BAUD"].label == "BAUD[11:4] = 0x00"
    assert uart["CONFIG"]["RESERVED"].label == "RESERVED[15:12]"
    assert uart["TXD"]["TXD"].label == "TXD[7:0] - <Write Only>"

    gpio = register_map["GPIO"]
    assert gpio["PINB"].label == "PINB [0x18]"
    assert gpio["MODE"].label == "MODE [0x0] = 0x1234"


def test_set_content_decodes_registers(register_map):
    uart = register_map["UART0"]
    errors = uart.set_content(_uart_content())

    assert errors == []
    assert uart["STATUS"].content == 1
    assert uart["CONFIG"].content == 0xA7
    assert uart["CONFIG"]["PARITY"].value == 7
    assert uart["CONFIG"]["BAUD"].value == 0xA
    assert uart["DATA0"].content == 0x1234
    assert uart["DATA1"].content == 0
    assert uart["CONFIG"]["PARITY"].label == "PARITY[2:0] = Included (0b111)"
    assert uart["CONFIG"]["BAUD"].label == "BAUD[11:4] = 0x0a"


def test_set_content_short_buffer(register_map):
    uart = register_map["UART0"]
    uart.set_content(bytes(8))

    assert uart["CONFIG"].content == 0
    # Not covered by the buffer, so the values are unchanged
    assert uart["TXD"].content == 0
    assert uart.get_bytes(0x10, 2) == b""


def test_get_bytes_before_read(register_map):
    assert register_map["UART0"].get_bytes(0, 4) == b""
    assert register_map["GPIO"]["PINA"].get_bytes(0, 2) == b""


def test_cluster_addressing(register_map):
    gpio = register_map["GPIO"]
    gpio.set_content(bytes(range(0x40)))

    assert gpio["PINB"].get_address(4) == 0x5000001C
    assert gpio["PINB"].get_bytes(4, 4) == bytes([0x1C, 0x1D, 0x1E, 0x1F])
    assert gpio["PINB"]["OUT"].content == 0x1F1E1D1C
    assert gpio["PINB"]["CNF"].content == 0x1918
    assert gpio["MODE"].content == 0x0100


def test_cluster_register_properties(register_map):
    pinb = register_map["GPIO"]["PINB"]

    # Inherited from the peripheral and device defaults
    assert pinb.size == 16
    assert pinb.access is Access.READ_WRITE
    assert pinb.reset_value == 0
    assert pinb["CNF"].size == 16
    assert pinb["OUT"].size == 32

    cluster = """\
<cluster>
  <name>C</name>
  <addressOffset>0x10</addressOffset>
  <size>8</size>
  <access>writeOnce</access>
  <resetValue>0x3</resetValue>
  <register><name>R</name><addressOffset>0x0</addressOffset></register>
</cluster>
"""
    c = parse(make_svd(make_peripheral(registers=cluster)))["P"]["C"]

    assert c.size == 8
    assert c.access is Access.WRITE_ONLY
    assert c.reset_value == 3
    assert c["R"].size == 8
    assert c["R"].reset_value == 3


def test_unsupported_register_size():
    registers = make_register(name="ODD", extra="<size>24</size>") + make_register(
        name="OK", offset="0x4"
    )
    register_map = parse(make_svd(make_peripheral(registers=registers, span="0x8")))
    peripheral = register_map["P"]

    errors = peripheral.set_content(bytes([1, 2, 3, 4, 5, 6, 7, 8]))

    assert len(errors) == 1
    assert isinstance(errors[0], UnsupportedRegisterSize)
    assert errors[0].register is peripheral["ODD"]
    assert "Should be 8, 16 or 32" in str(errors[0])
    assert peripheral["OK"].content == 0x08070605
    assert peripheral["ODD"].content == 0


@pytest.mark.parametrize(
    "offset, width, value",
    [(0, 1, 1), (0, 32, 0xDEADBEEF), (4, 8, 0xFF), (31, 1, 1), (3, 5, 0b10101), (8, 8, 0)],
)
def test_compute_update(register_map, offset, width, value):
    register = register_map["UART0"]["CONFIG"]
    new_value = register.compute_update(offset, width, value)

    assert extract_bits(new_value, offset, width) == value
    # Bits outside the range are preserved
    outside = ~(((1 << width) - 1) << offset)
    assert new_value & outside == register.content & outside & 0xFFFFFFFF


def test_compute_update_out_of_range(register_map):
    register = register_map["UART0"]["CONFIG"]

    with pytest.raises(InvalidEditValue) as exc_info:
        register.compute_update(0, 3, 8)

    assert exc_info.value.max_value == 7
    assert "Maximum value for this field is 7 (0x7)" in str(exc_info.value)
    assert register.content == 5

    with pytest.raises(InvalidEditValue):
        register["PARITY"].compute_update(-1)


def test_field_compute_update(register_map):
    register = register_map["UART0"]["CONFIG"]
    assert register["BAUD"].compute_update(0xFF) == 0xFF5
    assert register["PARITY"].compute_update(0) == 0


def test_reset(register_map):
    register = register_map["UART0"]["CONFIG"]
    register_map["UART0"].set_content(bytes(0x20))
    assert register.content == 0

    register.reset()
    assert register.content == 5


def test_resolved_format(register_map):
    uart = register_map["UART0"]
    config = uart["CONFIG"]
    parity = config["PARITY"]

    assert parity.resolved_format is NumberFormat.AUTO

    uart.format = NumberFormat.DECIMAL
    assert config.resolved_format is NumberFormat.DECIMAL
    assert config.label == "CONFIG [0x4] = 5"
    assert parity.label == "PARITY[2:0] = 5"

    config.format = NumberFormat.BINARY
    assert parity.resolved_format is NumberFormat.BINARY
    assert config.label == "CONFIG [0x4] = 0000 0000 0000 0000 0000 0000 0000 0101"
    assert config.copy_value == "0b00000000000000000000000000000101"
    assert parity.copy_value == "0b101"

    parity.format = NumberFormat.HEXADECIMAL
    assert parity.label == "PARITY[2:0] = 0x5"
    assert uart.resolved_format is NumberFormat.DECIMAL


def test_copy_values(register_map):
    assert register_map["UART0"].copy_value == "0x40002000"
    assert register_map["GPIO"]["PINB"].copy_value == "0x50000018"
    assert register_map["GPIO"]["MODE"].copy_value == "0x1234"
    assert register_map["UART0"]["CONFIG"]["BAUD"].copy_value == "0x00"


def test_register_parse_input(register_map):
    config = register_map["UART0"]["CONFIG"]

    assert config.parse_input("0x1234") == 0x1234
    assert config.parse_input("0XFFFFFFFF") == 0xFFFFFFFF
    assert config.parse_input("0b101") == 5
    assert config.parse_input(" 42 ") == 42

    for text in ["0x123456789", "abc", "#101", "4294967296", "0b" + "1" * 33]:
        with pytest.raises(InvalidEditValue):
            config.parse_input(text)

    data0 = register_map["UART0"]["DATA0"]
    with pytest.raises(InvalidEditValue) as exc_info:
        data0.parse_input("65536")
    assert exc_info.value.max_value == 0xFFFF


def test_field_parse_input(register_map):
    parity = register_map["UART0"]["CONFIG"]["PARITY"]

    assert parity.parse_input("Included") == 7
    assert parity.parse_input("0x3") == 3
    assert parity.parse_input("#11") == 3
    assert parity.value_for_enum("Excluded") == 0
    assert parity.value_for_enum("Nope") is None

    with pytest.raises(InvalidEditValue):
        parity.parse_input("zz")


def test_field_properties(register_map):
    ready = register_map["UART0"]["STATUS"]["READY"]

    assert ready.access is Access.READ_ONLY
    assert ready.register is register_map["UART0"]["STATUS"]
    assert ready.enumeration is None
    assert ready.enum_names == []
    assert ready.path == "UART0.STATUS.READY"
    assert ready.children == ()


def test_save_and_apply_state():
    register_map = parse(DEVICE_SVD)
    register_map["UART0"].expanded = True
    register_map["UART0"]["CONFIG"].format = NumberFormat.BINARY
    register_map["UART0"]["CONFIG"]["PARITY"].format = NumberFormat.DECIMAL
    register_map["GPIO"]["PINB"].expanded = True

    state = register_map.save_state()

    assert [s.node for s in state] == [
        "GPIO.PINB",
        "UART0",
        "UART0.CONFIG",
        "UART0.CONFIG.PARITY",
    ]
    assert state[2] == NodeSetting(
        node="UART0.CONFIG", format=NumberFormat.BINARY, expanded=False
    )
    assert state[3].expanded is None

    fresh = parse(DEVICE_SVD)
    assert fresh.apply_state(state) == 4
    assert fresh.save_state() == state
    assert fresh["GPIO"]["PINB"].expanded
    assert fresh["UART0"]["CONFIG"]["PARITY"].format is NumberFormat.DECIMAL


def test_apply_state_ignores_missing_nodes(register_map):
    settings = [
        NodeSetting(node="GONE.REG", expanded=True),
        NodeSetting(node="UART1", expanded=True, format=NumberFormat.DECIMAL),
    ]

    assert register_map.apply_state(settings) == 1
    assert register_map["UART1"].expanded
    assert register_map["UART1"].format is NumberFormat.DECIMAL


def test_default_state_is_empty(register_map):
    assert register_map.save_state() == []


def test_node_setting_dict():
    setting = NodeSetting(node="A.B", format=NumberFormat.HEXADECIMAL, expanded=True)
    assert setting.to_dict() == {"node": "A.B", "expanded": True, "format": "hexadecimal"}
    assert NodeSetting.from_dict(setting.to_dict()) == setting

    field_setting = NodeSetting.from_dict({"node": "A.B.C", "format": "Binary"})
    assert field_setting.format is NumberFormat.BINARY
    assert field_setting.expanded is None
    assert "expanded" not in field_setting.to_dict()

    for invalid in [{"node": ""}, {"format": "auto"}, {"node": "A", "format": "octal"}]:
        with pytest.raises(ValueError):
            NodeSetting.from_dict(invalid)


def test_find_by_path(register_map):
    parity = register_map.find_by_path("UART0.CONFIG.PARITY")
    assert parity is register_map["UART0"]["CONFIG"]["PARITY"]
    assert register_map.find_by_path("GPIO.PINC.OUT") is register_map["GPIO"]["PINC"]["OUT"]
    assert register_map.find_by_path("UART0") is register_map["UART0"]
    assert register_map.find_by_path(["UART0", "CONFIG"]) is register_map["UART0"]["CONFIG"]

    assert register_map.find_by_path("UART0.NOPE") is None
    assert register_map.find_by_path("NOPE") is None
    assert register_map.find_by_path("UART0.CONFIG.PARITY.MORE") is None
    assert register_map.find_by_path("") is None


def test_strict_lookup(register_map):
    with pytest.raises(NodeKeyError):
        register_map.get_node("UART0.NOPE")

    with pytest.raises(KeyError):
        register_map["NOPE"]

    with pytest.raises(KeyError):
        register_map["UART0"]["CONFIG"]["NOPE"]


def test_duplicate_names_first_wins():
    registers = make_register(name="R", offset="0x0") + make_register(
        name="R", offset="0x4"
    )
    peripheral = parse(make_svd(make_peripheral(registers=registers)))["P"]

    assert len(peripheral.children) == 2
    assert len(peripheral) == 1
    assert peripheral["R"].offset == 0


def test_parent_does_not_keep_map_alive():
    register = parse(DEVICE_SVD)["UART0"]["CONFIG"]

    with pytest.raises(ReferenceError):
        register.address
