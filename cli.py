#!/usr/bin/env python3
"""
CLI for the Box Cricket scorer
"""
import random

import click
from faker import Faker
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from boxcricket.auth.utils import create_access_token
from boxcricket.database import init_db, get_session
from boxcricket.engine import MatchEngine, MatchSettings, PlayerRef, TeamSheet, WicketInfo
from boxcricket.errors import ScoringError
from boxcricket.models.match import (
    BallOutcomeType, DismissalType, InningsStatus, MatchStatus, TeamSide, TossDecision,
)
from boxcricket.services.match_store import MatchStore
from boxcricket.services.scoring_service import ScoringService

console = Console()

# Rough box-cricket delivery mix
OUTCOME_WEIGHTS = {
    BallOutcomeType.DOT: 28,
    BallOutcomeType.ONE: 25,
    BallOutcomeType.TWO: 10,
    BallOutcomeType.THREE: 2,
    BallOutcomeType.FOUR: 10,
    BallOutcomeType.SIX: 6,
    BallOutcomeType.WIDE: 6,
    BallOutcomeType.NO_BALL: 2,
    BallOutcomeType.BYE: 2,
    BallOutcomeType.LEG_BYE: 2,
    BallOutcomeType.WICKET: 7,
}


@click.group()
def cli():
    """Box Cricket - ball-by-ball match scoring"""
    pass


@cli.command()
def init():
    """Initialize the database"""
    console.print("[yellow]Initializing database...[/yellow]")
    init_db()
    console.print("[green]Database initialized successfully![/green]")


def _guest_team(fake: Faker, side: str, size: int) -> TeamSheet:
    players = [
        PlayerRef(id=f"guest_{side}{i}", name=fake.first_name(), is_guest=True, is_captain=(i == 1))
        for i in range(1, size + 1)
    ]
    return TeamSheet(name=f"{fake.city()} XI"[:30], players=players)


def _simulate(engine: MatchEngine, rng: random.Random) -> None:
    """Score a whole match with random deliveries"""
    engine.open_toss()
    engine.conduct_toss(rng.choice(list(TeamSide)), rng.choice(list(TossDecision)))

    outcomes = list(OUTCOME_WEIGHTS)
    weights = list(OUTCOME_WEIGHTS.values())

    for number in (1, 2):
        if number == 2:
            engine.start_second_innings()
        innings = engine.current_innings
        batting = iter(engine.team(innings.batting_team).players)
        bowling = engine.team(innings.bowling_team).players
        engine.set_batsmen(next(batting).id, next(batting).id)
        last_bowler = None

        while innings.status == InningsStatus.IN_PROGRESS:
            if innings.bowler_id is None:
                bowler = rng.choice([p for p in bowling if p.id != last_bowler])
                engine.set_bowler(bowler.id)
                last_bowler = bowler.id

            outcome = rng.choices(outcomes, weights)[0]
            runs = 0
            wicket = None
            if outcome == BallOutcomeType.NO_BALL:
                runs = rng.choice([0, 0, 1, 4])
            elif outcome in (BallOutcomeType.BYE, BallOutcomeType.LEG_BYE):
                runs = rng.choice([1, 1, 2])
            elif outcome == BallOutcomeType.WICKET:
                if innings.next_ball_is_free_hit(engine.settings.free_hit_enabled):
                    wicket = WicketInfo(DismissalType.RUN_OUT, fielder_id=rng.choice(bowling).id)
                else:
                    kind = rng.choice([DismissalType.BOWLED, DismissalType.CAUGHT, DismissalType.LBW])
                    fielder = rng.choice(bowling).id if kind == DismissalType.CAUGHT else None
                    wicket = WicketInfo(kind, fielder_id=fielder)

            engine.apply_ball(outcome, runs, wicket)

            if wicket and innings.status == InningsStatus.IN_PROGRESS:
                engine.set_new_batsman(next(batting).id)

        if engine.status == MatchStatus.COMPLETED:
            break


@cli.command()
@click.option("--overs", default=6, help="Overs per innings")
@click.option("--players", default=6, help="Players per team")
@click.option("--seed", default=None, type=int, help="Random seed for a repeatable match")
@click.option("--save/--no-save", default=False, help="Persist the simulated match")
def demo(overs: int, players: int, seed, save: bool):
    """Simulate a match between two guest teams and print the scorecard"""
    rng = random.Random(seed)
    fake = Faker("en_IN")
    if seed is not None:
        fake.seed_instance(seed)

    try:
        settings = MatchSettings(overs=overs, players_per_team=players)
        engine = MatchEngine(settings, _guest_team(fake, "a", players), _guest_team(fake, "b", players))
        _simulate(engine, rng)
    except ScoringError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)

    if save:
        init_db()
        session = get_session()
        try:
            store = MatchStore(session)
            store.add(engine)
            store.save(engine)
            session.commit()
        finally:
            session.close()
        console.print(f"[green]Saved as match {engine.match_id}[/green]")

    _print_scorecard(engine.scorecard())


@cli.command()
@click.argument("match_id", type=int)
def scorecard(match_id: int):
    """Print the scorecard of a stored match"""
    try:
        card = ScoringService().get_scorecard(match_id)
    except ScoringError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)
    _print_scorecard(card)


@cli.command()
@click.argument("user_ref")
@click.option("--minutes", default=None, type=int, help="Token lifetime")
def token(user_ref: str, minutes):
    """Mint a bearer token for local testing"""
    console.print(create_access_token(user_ref, expires_minutes=minutes))


def _print_scorecard(card: dict):
    """Print a full match scorecard"""
    console.print(Panel(f"[bold cyan]{card['team_a']}[/bold cyan] vs [bold magenta]{card['team_b']}[/bold magenta]"))
    if card["toss"]:
        console.print(f"Toss: {card['toss']['winner']} chose to {card['toss']['decision']}")

    for innings in card["innings"]:
        if innings["status"] == "not_started":
            continue
        console.print(
            f"\n[bold]{innings['batting_team']}[/bold] "
            f"{innings['runs']}/{innings['wickets']} ({innings['overs']} overs) - RR: {innings['run_rate']}"
        )

        bat_table = Table(title="Batting")
        bat_table.add_column("Batter", style="cyan")
        bat_table.add_column("Dismissal")
        bat_table.add_column("R", justify="right")
        bat_table.add_column("B", justify="right")
        bat_table.add_column("4s", justify="right")
        bat_table.add_column("6s", justify="right")
        bat_table.add_column("SR", justify="right")
        for line in innings["batting"]:
            bat_table.add_row(
                line["name"],
                line["dismissal"],
                str(line["runs"]),
                str(line["balls"]),
                str(line["fours"]),
                str(line["sixes"]),
                f"{line['strike_rate']:.1f}",
            )
        console.print(bat_table)

        extras = innings["extras"]
        console.print(
            f"Extras: {extras['total']} (wd {extras['wides']}, nb {extras['no_balls']}, "
            f"b {extras['byes']}, lb {extras['leg_byes']})"
        )

        bowl_table = Table(title="Bowling")
        bowl_table.add_column("Bowler", style="magenta")
        bowl_table.add_column("O", justify="right")
        bowl_table.add_column("R", justify="right")
        bowl_table.add_column("W", justify="right")
        bowl_table.add_column("Econ", justify="right")
        for line in innings["bowling"]:
            bowl_table.add_row(
                line["name"],
                line["overs"],
                str(line["runs"]),
                str(line["wickets"]),
                f"{line['economy']:.1f}",
            )
        console.print(bowl_table)

        if innings["fall_of_wickets"]:
            fow = ", ".join(
                f"{w['runs']}-{w['wicket_number']} ({w['batsman']}, {w['overs']})"
                for w in innings["fall_of_wickets"]
            )
            console.print(f"Fall of wickets: {fow}")

    if card["result"]:
        console.print(f"\n[bold green]{card['result']['result_text']}[/bold green]")


if __name__ == "__main__":
    cli()
