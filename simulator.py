"""Interactive CLI simulator — exercise the OTP flow without a provider."""

import asyncio

from otp_gateway.core.errors import OTPError
from otp_gateway.core.manager import ChallengeManager
from otp_gateway.core.models import Channel
from otp_gateway.notifiers.console import ConsoleNotifier
from otp_gateway.notifiers.dispatcher import NotifierDispatcher
from otp_gateway.store.memory import InMemoryChallengeStore

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
BOLD = "\033[1m"
RESET = "\033[0m"


async def main() -> None:
    print(f"\n{BOLD}{'=' * 52}")
    print(f"  🔐  OTP Gateway — Simulator")
    print(f"{'=' * 52}{RESET}\n")

    print(f"{DIM}Commands:  send <email|phone>   verify <email|phone> <code>   quit{RESET}")
    print(f"{DIM}Codes are printed by the console notifier{RESET}\n")

    store = InMemoryChallengeStore()
    manager = ChallengeManager(store)
    dispatcher = NotifierDispatcher(
        {Channel.EMAIL: ConsoleNotifier("email"), Channel.SMS: ConsoleNotifier("sms")}
    )

    while True:
        try:
            line = input(f"{BLUE}{BOLD}>{RESET} ").strip()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Goodbye!{RESET}")
            break

        if not line:
            continue

        parts = line.split()
        command = parts[0].lower()

        if command == "quit":
            print(f"{DIM}Goodbye!{RESET}")
            break

        try:
            if command == "send" and len(parts) == 2:
                challenge = await manager.issue(parts[1])
                await dispatcher.send(challenge)
                print(f"{GREEN}Sent{RESET} to {challenge.subject} ({challenge.channel.value}), "
                      f"expires {challenge.expires_at:%H:%M:%S}\n")
            elif command == "verify" and len(parts) == 3:
                challenge = await manager.verify(parts[1], parts[2])
                print(f"{GREEN}{BOLD}Verified{RESET} {challenge.subject}\n")
            else:
                print(f"{YELLOW}Unrecognised command{RESET}\n")
        except OTPError as exc:
            print(f"{RED}{type(exc).__name__}:{RESET} {exc}\n")

    await store.close()


if __name__ == "__main__":
    asyncio.run(main())
