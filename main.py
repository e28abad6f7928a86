import argparse
import asyncio
import os
import sys

from tqdm.auto import tqdm

from co2globe.app import AssetStatus, GlobeApp
from co2globe.config import load_settings, with_overrides
from co2globe.display import snapshot_frame
from co2globe.io_utils import AssetsUnavailableError, ensure_output_dirs, load_assets, safe_overwrite, write_table
from co2globe.join import coverage_summary, join_emissions, write_coverage_report
from co2globe.logger import get_logger
from co2globe.schema import CO2, EMISSIONS_TYPES

EXIT_ASSETS_UNAVAILABLE = 2


async def run_timelapse(app: GlobeApp, start_year, emissions_type: str, export_dir=None, fmt: str = "csv") -> int:
	"""Play the timelapse headless; returns the number of years rendered."""
	scheduler = app.scheduler
	scheduler.change_emissions_type(emissions_type)
	if start_year is not None:
		scheduler.change_year(start_year)
	if export_dir:
		ensure_output_dirs(export_dir)

	done = asyncio.Event()
	rendered = []
	plan = scheduler.start()
	bar = tqdm(total=len(plan.years), desc="Timelapse", unit="yr")

	def on_change(state, event):
		if event == "tick":
			rendered.append(state.year)
			bar.update(1)
			bar.set_postfix(year=state.year)
			if export_dir:
				df = snapshot_frame(app.countries, state.year, state.emissions_type)
				write_table(df, os.path.join(export_dir, f"snapshot_{state.emissions_type}_{state.year}.{fmt}"))
		elif event in ("finish", "stop"):
			done.set()

	app.add_listener(on_change)
	try:
		await done.wait()
	finally:
		bar.close()
		app.close()
	return len(rendered)


def main():
	settings = load_settings()
	logger = get_logger()

	parser = argparse.ArgumentParser(description="CO2 globe data preparation and timelapse CLI")
	parser.add_argument("command", choices=["join", "snapshot", "play"], help="What to run")
	parser.add_argument("--year", type=int, default=None, help="Year to snapshot, or the year playback starts from")
	parser.add_argument("--emissions-type", choices=sorted(EMISSIONS_TYPES), default=CO2)
	parser.add_argument("--interval", type=int, default=None, help="Milliseconds per timelapse tick")
	parser.add_argument("--format", choices=["csv", "xlsx", "parquet"], default="csv")
	parser.add_argument("--export", action="store_true", help="During play, write one snapshot per year")
	args = parser.parse_args()

	try:
		settings = with_overrides(settings, interval=args.interval)
	except ValueError as e:
		parser.error(str(e))
	ensure_output_dirs(settings.out_dir)

	if args.command == "join":
		try:
			countries, co2_data = load_assets(settings.countries_path, settings.co2_path)
		except AssetsUnavailableError as e:
			logger.error(str(e))
			sys.exit(EXIT_ASSETS_UNAVAILABLE)
		countries = join_emissions(countries, co2_data)
		summary = coverage_summary(countries, co2_data)
		path = write_coverage_report(summary, settings.out_dir)
		logger.info(f"Coverage report written to {path}")

	if args.command == "snapshot":
		app = GlobeApp(settings)
		if app.load(defer_render=False) is AssetStatus.UNAVAILABLE:
			sys.exit(EXIT_ASSETS_UNAVAILABLE)
		year = args.year if args.year is not None else settings.max_year
		df = snapshot_frame(app.countries, year, args.emissions_type)
		path = write_table(df, safe_overwrite(os.path.join(settings.out_dir, f"snapshot_{args.emissions_type}_{year}.{args.format}")))
		logger.info(f"Snapshot of {len(df)} countries written to {path}")

	if args.command == "play":
		async def _play():
			app = GlobeApp(settings)
			if app.load(defer_render=False) is AssetStatus.UNAVAILABLE:
				return None
			export_dir = os.path.join(settings.out_dir, "timelapse") if args.export else None
			return await run_timelapse(app, args.year, args.emissions_type, export_dir, args.format)

		count = asyncio.run(_play())
		if count is None:
			sys.exit(EXIT_ASSETS_UNAVAILABLE)
		logger.info(f"Timelapse rendered {count} years.")


if __name__ == "__main__":
	main()
