"""
# bleswitch

Expose Bluetooth Low Energy peripherals as on/off switches.

Each configured device gets a `PeripheralSession` that scans for the
peripheral, connects, binds one GATT characteristic and keeps the link alive
across drops. Values arrive through notifications (push) or periodic reads
(poll) and are published with pypubsub:

- `bleswitch.state.changed` - `value` (bool), `session`
- `bleswitch.connection.status` - `session`, `connected` (bool)

Example:

```
import asyncio
from pubsub import pub
from bleswitch.ble_interface import DeviceTarget, PeripheralSession

def on_change(value, session):
    print(session.name, value)

async def main():
    pub.subscribe(on_change, "bleswitch.state.changed")
    session = PeripheralSession(DeviceTarget("AA:BB:CC:DD:EE:FF", "ffe0", "ffe1"))
    await session.ensure_connected()
    await session.set_state(True)
    await asyncio.sleep(60)
    await session.shutdown()

asyncio.run(main())
```
"""

__version__ = "0.1.0"
