from __future__ import annotations

import argparse
import logging

from eth_utils import from_wei

from .config import get_network, load_networks
from .deploy import deploy_raffle
from .env import Env
from .errors import RaffleEngineError
from .keeper import Keeper
from .raffle import WinnerPicked


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def cmd_networks(args: argparse.Namespace) -> int:
    networks = load_networks(args.config)
    for name in sorted(networks):
        n = networks[name]
        kind = "development" if n.is_development else "live"
        print(
            f"{name:<10} chain_id={n.chain_id:<10} {kind:<12} "
            f"entrance_fee={from_wei(n.entrance_fee, 'ether')} ETH interval={n.interval}s"
        )
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    log = logging.getLogger("simulate")
    network = get_network(args.network, args.config)
    if not network.is_development:
        raise SystemExit(f"simulate only runs on development networks, not {network.name!r}")
    if args.players < 1:
        raise SystemExit("--players must be at least 1")

    env = Env()
    deployment = deploy_raffle(network, env)
    raffle = deployment.raffle
    mock = deployment.coordinator
    fee = raffle.get_entrance_fee()

    winners = []
    raffle.add_listener(lambda e: winners.append(e.winner), WinnerPicked)
    keeper = Keeper(
        raffle,
        poll_interval=0,
        fulfill=lambda request_id: mock.fulfill_random_words(request_id, raffle),
    )

    print("========================================")
    print("RAFFLE SIMULATION")
    print("========================================")
    print(f"Network       : {network.name} ({network.chain_id})")
    print(f"Raffle        : {raffle.address}")
    print(f"Coordinator   : {mock.address}")
    print(f"Entrance fee  : {from_wei(fee, 'ether')} ETH")
    print(f"Interval      : {network.interval}s")

    for round_no in range(1, args.rounds + 1):
        players = [env.generate_address() for _ in range(args.players)]
        for player in players:
            env.set_balance(player, fee)
            raffle.enter_raffle(value=fee, sender=player)
        pot = raffle.get_pot()

        env.time_travel(network.interval + 1)
        log.debug("Round %d: travelled %ds", round_no, network.interval + 1)
        try:
            keeper.run(max_ticks=2)
        except RaffleEngineError as e:
            log.error("Round %d failed: %s", round_no, e)
            return 1

        winner = raffle.get_recent_winner()
        print("----------------------------------------")
        print(f"Round {round_no}")
        print(f"Players       : {len(players)}")
        print(f"Pot           : {from_wei(pot, 'ether')} ETH")
        print(f"Winner        : {winner} (#{players.index(winner)})")
        print(f"Winner balance: {from_wei(env.get_balance(winner), 'ether')} ETH")

    sub = mock.get_subscription(deployment.subscription_id)
    print("----------------------------------------")
    print(f"Draws         : {len(winners)}")
    print(f"Subscription  : {from_wei(sub.balance, 'ether')} LINK left")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="raffle-engine",
        description="Recurring raffle driven by an upkeep keeper and a VRF coordinator.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--config", default=None, help="Path to raffle.toml.")
    p.add_argument("--network", default=None, help="Network name (else $RAFFLE_NETWORK).")

    sub = p.add_subparsers(dest="cmd", required=True)

    n = sub.add_parser("networks", help="List configured networks.")
    n.set_defaults(func=cmd_networks)

    s = sub.add_parser("simulate", help="Run raffle rounds against a mock coordinator.")
    s.add_argument("--players", type=int, default=4, help="Entrants per round.")
    s.add_argument("--rounds", type=int, default=1, help="Number of rounds.")
    s.set_defaults(func=cmd_simulate)

    return p


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
