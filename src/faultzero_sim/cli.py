"""Command-line interface for the FaultZero telemetry engine."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path

import click

from .config import Config
from .fleet import ALL_TYPES, MACHINE_TYPES
from .generators import METRIC_PROFILES, SensorHistoryGenerator
from .mqtt_client import SnapshotPublisher
from .session import DEFAULT_USERS, MemoryPreferenceStore
from .simulator import DashboardSnapshot, Simulator

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _load_config(config_path):
    config = Config.from_yaml(config_path) if config_path else Config.default()
    return Config.from_env(config)


def _summary_line(snapshot: DashboardSnapshot) -> str:
    s = snapshot.dashboard_summary
    return (
        f"tick={snapshot.tick_count} machines={s.total_machines} "
        f"healthy={s.healthy_machines} warning={s.warning_machines} critical={s.critical_machines} "
        f"avg_health={s.avg_health_score:.1f} alerts={len(snapshot.alerts)}"
    )


@click.group()
@click.version_option(version="0.1.0")
def main():
    """FaultZero Simulator - fleet telemetry for a monitoring dashboard.

    Simulates 14 machines (Slitter and Inspection units) across four plants,
    filters them by user role and selection, and derives the dashboard views:
    summary, alerts, anomalies, sensor history, energy/ROI and recommendations.
    """
    pass


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
def init(output):
    """Generate a sample configuration file."""
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo()
    click.echo("Edit the config file to customize:")
    click.echo("  - Simulation tick interval and random seed")
    click.echo("  - Default user and preferences file")
    click.echo("  - MQTT broker settings for snapshot publishing")
    click.echo()
    click.echo(f"Run with: faultzero-sim run --config {config_path}")


@main.command()
def users():
    """List the built-in users and what they can see."""
    for user in DEFAULT_USERS:
        click.echo(f"{user.id:<8} {user.name:<18} {user.role.value:<11} "
                   f"plants={','.join(user.assigned_plants)} types={','.join(user.allowed_types)}")


@main.command()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None)
@click.option("--user", "-u", "user_id", default=None, help="User id (see 'users')")
@click.option("--plant", "-p", default=None, help="Selected plant")
@click.option(
    "--type",
    "-t",
    "machine_type",
    type=click.Choice([ALL_TYPES] + MACHINE_TYPES),
    default=None,
    help="Selected machine type",
)
@click.option("--ticks", type=click.IntRange(0), default=0, help="Simulation steps before the snapshot")
@click.option("--seed", type=int, default=None, help="Random seed")
def snapshot(config_path, user_id, plant, machine_type, ticks, seed):
    """Compute one dashboard snapshot and print it as JSON."""
    config = _load_config(config_path)
    if seed is not None:
        config.simulation.random_seed = seed

    engine = Simulator(config, preference_store=MemoryPreferenceStore())
    try:
        if user_id:
            engine.set_user(user_id)
        if plant:
            engine.set_plant(plant)
        if machine_type:
            engine.set_machine_type(machine_type)
        if ticks:
            engine.set_simulated_mode(True)
            for _ in range(ticks):
                engine.tick()
        result = engine.refresh_data()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result.to_dict(), indent=2))


@main.command()
@click.option("--machine", "-m", "machine_id", type=int, default=1, help="Machine id")
@click.option(
    "--metric",
    type=click.Choice(sorted(METRIC_PROFILES)),
    default="temperature",
    help="Sensor metric",
)
@click.option("--days", type=click.IntRange(1), default=7, help="History length in days")
@click.option("--seed", type=int, default=None, help="Random seed")
def history(machine_id, metric, days, seed):
    """Print synthetic hourly sensor history as CSV."""
    import random

    gen = SensorHistoryGenerator(rng=random.Random(seed))
    click.echo("timestamp,value")
    for point in gen.generate(machine_id, metric, days):
        click.echo(f"{point.timestamp.isoformat()},{point.value:.3f}")


@main.command()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None)
@click.option("--user", "-u", "user_id", default=None, help="User id (see 'users')")
@click.option("--duration", type=float, default=None, help="Stop after this many seconds")
@click.option("--publish", is_flag=True, default=False, help="Publish snapshots to MQTT")
@click.option("--dry-run", is_flag=True, default=False, help="Publish without a broker")
def run(config_path, user_id, duration, publish, dry_run):
    """Run the live simulation and log a summary on every refresh."""
    config = _load_config(config_path)
    engine = Simulator(config)

    publisher = None
    if publish or dry_run:
        publisher = SnapshotPublisher(config.mqtt, config.uns)
        if not publisher.connect(dry_run=dry_run):
            logger.error("Failed to connect to MQTT broker")
            sys.exit(1)
        engine.add_listener(publisher.publish_snapshot)

    engine.add_listener(lambda snap: logger.info(_summary_line(snap)))

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Shutdown requested")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    if user_id:
        try:
            engine.set_user(user_id)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    engine.set_simulated_mode(True)
    engine.start()

    try:
        stop_event.wait(duration)
    finally:
        engine.stop()
        if publisher:
            logger.info(f"Publisher stats: {publisher.status()}")
            publisher.disconnect()


if __name__ == "__main__":
    main()
