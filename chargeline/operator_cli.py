"""
Operator console for staff at the charging counter.

Runs against the database directly and drives the same lifecycle controller
as the HTTP API.
"""

import asyncio
import sys
from datetime import timedelta
from loguru import logger
from chargeline.availability import Availability, get_station_availability
from chargeline.billing import BillingInput, compute_billing
from chargeline.database import AsyncSessionLocal
from chargeline.errors import ChargelineError, ValidationError
from chargeline.lifecycle import SessionLifecycleController

AVAILABILITY_ICONS = {
    Availability.AVAILABLE: "🟢",
    Availability.OCCUPIED: "🔴",
    Availability.MAINTENANCE: "🟡",
}


def parse_billing(args):
    """
    Parse billing numbers from console arguments.

    Accepted shapes:
        <start%> <end%> <rate>
        <kwh> <rate>
        <start%> <end%> <rate> <kwh> <rate>
    """
    try:
        values = [float(arg) for arg in args]
    except ValueError:
        raise ValueError("Billing values must be numbers")

    if not values:
        return None
    if len(values) == 2:
        return BillingInput(energy_consumed=values[0], rate_per_energy_unit=values[1])
    if len(values) == 3:
        return BillingInput(*values)
    if len(values) == 5:
        return BillingInput(*values)
    raise ValueError("Expected <start%> <end%> <rate> and/or <kwh> <rate>")


class OperatorCLI:
    """Interactive command-line interface for charging staff."""

    def __init__(self, session_factory=AsyncSessionLocal, controller=None):
        self.session_factory = session_factory
        self.controller = controller or SessionLifecycleController()
        self.running = False

    async def start(self):
        """Start the CLI interface."""
        self.running = True
        print("\n" + "=" * 60)
        print("⚡ Chargeline Operator Console")
        print("=" * 60)
        await self._show_help()

        while self.running:
            try:
                command = await self._get_input("chargeline > ")
                if not command:
                    # EOF on stdin
                    break
                await self.process_command(command.strip())

            except KeyboardInterrupt:
                print("\n👋 Exiting operator console...")
                break
            except Exception as e:
                print(f"❌ Error: {e}")

    async def _get_input(self, prompt):
        """Get user input asynchronously."""
        print(prompt, end="", flush=True)

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, sys.stdin.readline)

    async def process_command(self, command):
        """Process a CLI command."""
        if not command:
            return

        parts = command.split()
        cmd = parts[0].lower()

        if cmd == "quit" or cmd == "exit":
            self.running = False
            print("👋 Goodbye!")

        elif cmd == "help":
            await self._show_help()

        elif cmd == "stations":
            await self._show_stations()

        elif cmd == "sessions":
            await self._show_sessions(parts[1:])

        elif cmd == "start":
            await self._start(parts[1:])

        elif cmd == "complete":
            await self._complete(parts[1:])

        elif cmd == "cancel":
            await self._cancel(parts[1:])

        elif cmd == "notify":
            await self._notify(parts[1:])

        elif cmd == "bill":
            self._bill(parts[1:])

        else:
            print(f"❌ Unknown command: {cmd}")
            print("Type 'help' for available commands")

    async def _show_help(self):
        """Show help information."""
        print("\n📋 Operator Commands:")
        print("-" * 40)
        print("stations                          - Station availability")
        print("sessions [status]                 - Recent charging orders")
        print("start <order> [minutes]           - Start charging a booked order")
        print("complete <order> [billing] [paid] - Complete an active order")
        print("cancel <order>                    - Cancel a booked/active order")
        print("notify <order>                    - Resend the customer confirmation")
        print("bill <start%> <end%> <rate> [<kwh> <rate>] - Price a charge")
        print("bill <kwh> <rate>                 - Price by energy only")
        print("help                              - Show this help")
        print("quit                              - Exit console")
        print()

    async def _show_stations(self):
        """Show resolved station availability."""
        print("\n🔌 Stations:")
        print("-" * 35)

        async with self.session_factory() as db:
            resolved = await get_station_availability(db, clock=self.controller.clock)

        if not resolved:
            print("  No stations registered")
        for entry in resolved:
            icon = AVAILABILITY_ICONS[entry.availability]
            line = f"  {icon} {entry.station.station_id}: {entry.availability.value}"
            if entry.available_at:
                line += f" (free at {entry.available_at:%Y-%m-%d %H:%M})"
            if entry.overrun:
                line += " ⚠️ overrun order needs closing"
            print(line)
        print()

    async def _show_sessions(self, args):
        status = args[0] if args else None
        async with self.session_factory() as db:
            orders = await self.controller.list_sessions(db, status=status, limit=20)

        print("\n🧾 Charging Orders:")
        print("-" * 35)
        if not orders:
            print("  No charging orders")
        for order in orders:
            print(
                f"  {order.order_number} {order.status:<9} {order.customer_name} "
                f"start={order.start_time:%Y-%m-%d %H:%M} total={order.total_amount}"
            )
        print()

    async def _start(self, args):
        """Handle start command."""
        if len(args) < 1:
            print("❌ Usage: start <order> [minutes]")
            return

        expected_end = None
        if len(args) > 1:
            try:
                minutes = int(args[1])
            except ValueError:
                print("❌ Minutes must be a number")
                return
            expected_end = self.controller.clock() + timedelta(minutes=minutes)

        try:
            async with self.session_factory() as db:
                order = await self.controller.start(db, args[0], expected_end)
            print(
                f"   ✅ {order.order_number} charging, expected end "
                f"{order.expected_end_time:%Y-%m-%d %H:%M}"
            )
        except ChargelineError as e:
            print(f"   ❌ {e}")
        print()

    async def _complete(self, args):
        """Handle complete command."""
        if len(args) < 1:
            print("❌ Usage: complete <order> [billing] [paid]")
            return

        billing_args = args[1:]
        paid = bool(billing_args) and billing_args[-1].lower() == "paid"
        if paid:
            billing_args = billing_args[:-1]

        try:
            billing = parse_billing(billing_args)
        except ValueError as e:
            print(f"❌ {e}")
            return

        try:
            async with self.session_factory() as db:
                order = await self.controller.complete(db, args[0], billing, paid=paid)
            print(
                f"   ✅ {order.order_number} completed: total={order.total_amount} "
                f"payment={order.payment_status}"
            )
        except ChargelineError as e:
            print(f"   ❌ {e}")
        print()

    async def _cancel(self, args):
        """Handle cancel command."""
        if len(args) < 1:
            print("❌ Usage: cancel <order>")
            return

        try:
            async with self.session_factory() as db:
                order = await self.controller.cancel(db, args[0])
            print(f"   ✅ {order.order_number} cancelled")
        except ChargelineError as e:
            print(f"   ❌ {e}")
        print()

    async def _notify(self, args):
        """Handle notify command."""
        if len(args) < 1:
            print("❌ Usage: notify <order>")
            return

        try:
            async with self.session_factory() as db:
                sent = await self.controller.notify(db, args[0])
            if sent:
                print(f"   📧 Confirmation sent for {args[0]}")
            else:
                print(f"   ⚠️  Confirmation for {args[0]} could not be delivered")
        except ChargelineError as e:
            print(f"   ❌ {e}")
        print()

    def _bill(self, args):
        """Handle bill command."""
        try:
            billing = parse_billing(args)
        except ValueError as e:
            print(f"❌ {e}")
            return
        if billing is None:
            print("❌ Usage: bill <start%> <end%> <rate> [<kwh> <rate>]")
            return

        try:
            breakdown = compute_billing(billing)
        except ValidationError as e:
            print(f"❌ {e}")
            return
        print(f"\n💰 By percentage: {breakdown.percentage_amount}")
        print(f"   By energy:     {breakdown.energy_amount}")
        print(f"   Total:         {breakdown.total_amount}")
        print()


def main():
    logger.info("Starting operator console...")
    try:
        asyncio.run(OperatorCLI().start())
    except KeyboardInterrupt:
        print("\n👋 Console stopped by user.")


if __name__ == "__main__":
    main()
