"""
Pytest configuration and shared fixtures for the periphview test suite.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

import periphview

DEVICE_SVD = """\
<?xml version="1.0" encoding="utf-8"?>
<device schemaVersion="1.3" xmlns:xs="http://www.w3.org/2001/XMLSchema-instance">
  <!-- Device used by most of the tests -->
  <name>TESTDEV</name>
  <size>32</size>
  <access>read-write</access>
  <resetValue>0x00000000</resetValue>
  <peripherals>
    <peripheral>
      <name>UART0</name>
      <description>Universal asynchronous receiver/transmitter</description>
      <groupName>UART</groupName>
      <baseAddress>0x40002000</baseAddress>
      <addressBlock>
        <offset>0</offset>
        <size>0x20</size>
        <usage>registers</usage>
      </addressBlock>
      <registers>
        <register>
          <name>CONFIG</name>
          <description>Configuration of the UART</description>
          <addressOffset>0x4</addressOffset>
          <resetValue>0x00000005</resetValue>
          <fields>
            <field>
              <name>PARITY</name>
              <bitOffset>0</bitOffset>
              <bitWidth>3</bitWidth>
              <enumeratedValues>
                <enumeratedValue>
                  <name>Excluded</name>
                  <description>Parity is excluded</description>
                  <value>0</value>
                </enumeratedValue>
                <enumeratedValue>
                  <name>Included</name>
                  <description>Parity is included</description>
                  <value>0x7</value>
                </enumeratedValue>
                <enumeratedValue>
                  <name>Other</name>
                  <isDefault>true</isDefault>
                </enumeratedValue>
              </enumeratedValues>
            </field>
            <field>
              <name>BAUD</name>
              <bitRange>[11:4]</bitRange>
            </field>
            <field>
              <name>RESERVED</name>
              <lsb>12</lsb>
              <msb>15</msb>
            </field>
          </fields>
        </register>
        <register>
          <name>STATUS</name>
          <addressOffset>0x0</addressOffset>
          <access>read-only</access>
          <fields>
            <field>
              <name>READY</name>
              <bitOffset>0</bitOffset>
              <bitWidth>1</bitWidth>
              <access>read-write</access>
            </field>
          </fields>
        </register>
        <register>
          <name>TXD</name>
          <addressOffset>0x8</addressOffset>
          <size>8</size>
          <access>write-only</access>
          <fields>
            <field>
              <name>TXD</name>
              <bitOffset>0</bitOffset>
              <bitWidth>8</bitWidth>
            </field>
          </fields>
        </register>
        <register>
          <name>DATA%s</name>
          <addressOffset>0x10</addressOffset>
          <dim>2</dim>
          <dimIncrement>4</dimIncrement>
          <size>16</size>
        </register>
      </registers>
    </peripheral>
    <peripheral derivedFrom="UART0">
      <name>UART1</name>
      <baseAddress>0x40003000</baseAddress>
    </peripheral>
    <peripheral>
      <name>GPIO</name>
      <description>General purpose input and output</description>
      <baseAddress>0x50000000</baseAddress>
      <size>16</size>
      <addressBlock>
        <offset>0</offset>
        <size>0x40</size>
        <usage>registers</usage>
      </addressBlock>
      <registers>
        <cluster>
          <name>PIN%s</name>
          <description>Pin configuration</description>
          <addressOffset>0x10</addressOffset>
          <dim>3</dim>
          <dimIncrement>8</dimIncrement>
          <dimIndex>A-C</dimIndex>
          <register>
            <name>CNF</name>
            <addressOffset>0x0</addressOffset>
          </register>
          <register>
            <name>OUT</name>
            <addressOffset>0x4</addressOffset>
            <size>32</size>
          </register>
        </cluster>
        <register>
          <name>MODE</name>
          <addressOffset>0x0</addressOffset>
          <resetValue>0x1234</resetValue>
        </register>
      </registers>
    </peripheral>
  </peripherals>
</device>
"""


def make_svd(peripherals: str, device_props: str = "") -> str:
    """
    Build a minimal SVD document.

    :param peripherals: XML of the peripheral elements.
    :param device_props: XML of additional device level elements.
    """
    return f"""\
<?xml version="1.0" encoding="utf-8"?>
<device schemaVersion="1.3">
  <name>MINI</name>
  {device_props}
  <peripherals>
    {peripherals}
  </peripherals>
</device>
"""


def make_peripheral(
    name: str = "P",
    registers: str = "",
    base_address: str = "0x40000000",
    extra: str = "",
    span: str = "0x100",
) -> str:
    """Build the XML of a peripheral element."""
    return f"""\
<peripheral>
  <name>{name}</name>
  <baseAddress>{base_address}</baseAddress>
  {extra}
  <addressBlock><offset>0</offset><size>{span}</size><usage>registers</usage></addressBlock>
  <registers>
    {registers}
  </registers>
</peripheral>
"""


def make_register(
    fields: str = "", name: str = "R", offset: str = "0x0", extra: str = ""
) -> str:
    """Build the XML of a register element with the given fields."""
    fields_xml = f"<fields>{fields}</fields>" if fields else ""
    return f"""\
<register>
  <name>{name}</name>
  <addressOffset>{offset}</addressOffset>
  {extra}
  {fields_xml}
</register>
"""


class FakeTransport:
    """In-memory stand-in for a debugger memory interface."""

    def __init__(self, memory: Optional[Dict[int, int]] = None) -> None:
        self.memory: Dict[int, int] = dict(memory or {})
        self.reads: List[Tuple[int, int]] = []
        self.writes: List[Tuple[int, str]] = []
        self.ops: List[str] = []
        self.fail_reads = False
        self.fail_writes = False

    def load(self, address: int, data: bytes) -> None:
        for i, b in enumerate(data):
            self.memory[address + i] = b

    async def read_memory(self, address: int, length: int) -> bytes:
        self.ops.append("read")
        # Give other tasks a chance to run in the middle of the request
        await asyncio.sleep(0)
        if self.fail_reads:
            raise RuntimeError("target not responding")
        self.reads.append((address, length))
        return bytes(self.memory.get(address + i, 0) for i in range(length))

    async def write_memory(self, address: int, data_hex: str) -> None:
        self.ops.append("write")
        await asyncio.sleep(0)
        if self.fail_writes:
            raise RuntimeError("target not responding")
        self.writes.append((address, data_hex))
        self.load(address, bytes.fromhex(data_hex))


class FakeInputs:
    """Input provider that answers prompts from a list of canned responses."""

    def __init__(self, answers: Sequence[Optional[str]]) -> None:
        self._answers = list(answers)
        self.prompts: List[str] = []
        self.picks: List[List[str]] = []

    async def ask_value(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        return self._answers.pop(0)

    async def pick(self, options: Sequence[str]) -> Optional[str]:
        self.picks.append(list(options))
        return self._answers.pop(0)


@pytest.fixture
def device_svd() -> str:
    return DEVICE_SVD


@pytest.fixture
def register_map() -> periphview.RegisterMap:
    return periphview.parse(DEVICE_SVD)


@pytest.fixture
def svd_file(tmp_path: Path) -> Path:
    path = tmp_path / "device.svd"
    path.write_text(DEVICE_SVD, encoding="utf-8")
    return path


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def run() -> Callable:
    """Run a coroutine to completion."""
    return asyncio.run
