"""
volumebrain
main.py

Command line front end: reads a recipe JSON file and prints the water volume plan.
"""
import argparse
import json
import logging
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from brew_errors import BrewCalculationError
from settings_manager import SettingsManager, VALID_UNITS
from water_volume_manager import WaterVolumeManager

console = Console()

EXIT_OK = 0
EXIT_CALCULATION_ERROR = 1
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volumebrain",
        description=(
            "Reconcile a recipe's water volumes from strike water to packaging.\n\n"
            "The recipe is a JSON object with batch_size, boil_size, boil_time,\n"
            "fermentables, mash (steps) and an optional equipment profile. Volumes are litres."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("recipe", help="Path to a recipe JSON file.")
    parser.add_argument(
        "--units",
        choices=list(VALID_UNITS),
        default=None,
        help="Display unit the flow is rounded in (default: from settings, imperial).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON instead of a table.",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding volumebrain-data/volumebrain_settings.json. Settings stay in memory if omitted.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every stage.",
    )
    return parser


def configure_logging(level):
    logging.basicConfig(level=level, format="[%(name)s] %(message)s", stream=sys.stderr)


def load_recipe(path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    # Accept BeerJSON-style {"recipes": [...]} wrappers too
    if isinstance(data, dict) and isinstance(data.get("recipes"), list) and data["recipes"]:
        data = data["recipes"][0]
    return data


def _fmt(liters):
    return f"{liters:.2f}"


def print_report(result):
    flow = result.flow
    decision = result.sparge_decision

    console.print(f"[bold]{result.inputs.system.description.title()}[/] - {escape(decision.summary)}")

    table = Table(title="Water Volumes", show_header=True, header_style="bold")
    table.add_column("Stage", style="cyan")
    table.add_column("Litres", justify="right")

    table.add_row("Mash water", _fmt(flow.mash_water_l))
    table.add_row("Strike water", _fmt(flow.strike_water_l))
    table.add_row("Sparge water", _fmt(flow.sparge_water_l))
    table.add_row("Total mash water", _fmt(flow.total_mash_water_l))
    table.add_row("Into kettle", _fmt(flow.volume_into_kettle_l))
    if result.is_no_boil:
        table.add_row("Post-mash (no boil)", _fmt(flow.volume_pre_boil_l))
    else:
        table.add_row("Pre-boil (hot)", _fmt(flow.volume_pre_boil_l))
        table.add_row("Post-boil (hot)", _fmt(flow.volume_post_boil_l))
    table.add_row("To fermenter", _fmt(flow.volume_to_fermenter_l))
    table.add_row("Packaging", _fmt(flow.volume_packaging_l))
    console.print(table)

    losses = Table(title="Losses & Rates", show_header=True, header_style="bold")
    losses.add_column("Item", style="dim")
    losses.add_column("Value", justify="right")
    losses.add_row("Grain absorption", f"{_fmt(flow.grain_absorption_l)} L "
                                       f"({result.inputs.equipment.grain_absorption_rate_qt_lb:.3f} qt/lb)")
    losses.add_row("Mash tun deadspace", f"{_fmt(flow.mash_tun_deadspace_l)} L")
    losses.add_row("Evaporation", f"{_fmt(flow.evap_loss_l)} L")
    losses.add_row("Boil-off rate", f"{_fmt(result.boil_off_rate_per_hour_l)} L/hr "
                                    f"({result.evaporation.evap_rate_pct:.1f}%)")
    losses.add_row("Trub/chiller loss", f"{_fmt(result.equipment.trub_chiller_loss_l)} L")
    losses.add_row("Fermenter loss", f"{_fmt(result.equipment.fermenter_loss_l)} L")
    console.print(losses)

    for flag in result.flags:
        console.print(f"[yellow]FLAG[/] {escape(flag)}")
    for warning in result.warnings:
        console.print(f"[yellow]WARNING[/] {escape(warning)}")
    for error in result.errors:
        console.print(f"[red]ERROR[/] {escape(error)}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = SettingsManager(args.data_dir)
    if args.units:
        settings.override("system_settings", "units", args.units)

    level = logging.DEBUG if args.verbose else settings.get_system_setting("log_level", "WARNING")
    configure_logging(level)

    try:
        recipe = load_recipe(args.recipe)
    except OSError as e:
        console.print(f"[red]Cannot read recipe file:[/] {escape(str(e))}")
        return EXIT_INPUT_ERROR
    except json.JSONDecodeError as e:
        console.print(f"[red]Recipe file is not valid JSON:[/] {escape(str(e))}")
        return EXIT_INPUT_ERROR

    manager = WaterVolumeManager(settings)
    try:
        result = manager.calculate(recipe)
    except BrewCalculationError as e:
        console.print(f"[red]{escape(e.user_message)}[/] {escape(str(e))}")
        return EXIT_CALCULATION_ERROR

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_report(result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
