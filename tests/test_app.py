import json
import os
import tempfile
import unittest

from co2globe.app import AssetStatus, GlobeApp
from co2globe.config import Settings, load_settings, with_overrides
from co2globe.schema import CO2_PER_CAPITA, INITIAL_TRANSITION
from tests.fake_loop import FakeLoop

COUNTRIES = {
	"type": "FeatureCollection",
	"features": [
		{"type": "Feature", "properties": {"ISO_A2": "US", "ISO_A3": "USA", "ADMIN": "United States"}},
		{"type": "Feature", "properties": {"ISO_A2": "FR", "ISO_A3": "FRA", "ADMIN": "France"}},
		{"type": "Feature", "properties": {"ISO_A2": "AQ", "ISO_A3": "ATA", "ADMIN": "Antarctica"}},
	],
}

CO2_DATA = {
	"United States": {
		"iso_code": "USA",
		"data": [
			{"year": 2019, "co2": 5284.7, "co2_per_capita": 16.1},
			{"year": 2020, "co2": 4712.8, "co2_per_capita": 14.2},
		],
	},
	"World": {"data": [{"year": 2020, "co2": 34807.3}]},
}


class TestGlobeApp(unittest.TestCase):
	def setUp(self):
		self.tmp = tempfile.TemporaryDirectory()
		self.countries_path = os.path.join(self.tmp.name, "countries.geojson")
		self.co2_path = os.path.join(self.tmp.name, "owid-co2-data.json")
		with open(self.countries_path, "w", encoding="utf-8") as f:
			json.dump(COUNTRIES, f)
		with open(self.co2_path, "w", encoding="utf-8") as f:
			json.dump(CO2_DATA, f)
		self.loop = FakeLoop()
		self.settings = Settings(
			countries_path=self.countries_path,
			co2_path=self.co2_path,
			out_dir=self.tmp.name,
			min_year=2018,
			max_year=2020,
		)

	def tearDown(self):
		self.tmp.cleanup()

	def test_load_and_render_inputs(self):
		app = GlobeApp(self.settings, loop=self.loop)
		self.assertEqual(app.load(), AssetStatus.READY)
		inputs = app.render_inputs()
		self.assertEqual(inputs["status"], "ready")
		self.assertEqual([f["properties"]["ISO_A3"] for f in inputs["polygons"]], ["USA", "FRA"])
		self.assertEqual(inputs["transition_duration"], INITIAL_TRANSITION)
		self.assertEqual(inputs["year"], 2020)

		self.loop.advance(1.0)
		inputs = app.render_inputs()
		usa, fra = inputs["polygons"]
		self.assertGreater(inputs["altitude"](usa), inputs["altitude"](fra))
		self.assertIn("United States (US)", inputs["label"](usa))
		self.assertTrue(inputs["cap_color"](usa).startswith("#"))

	def test_assets_unavailable(self):
		os.remove(self.co2_path)
		app = GlobeApp(self.settings, loop=self.loop)
		self.assertEqual(app.load(), AssetStatus.UNAVAILABLE)
		self.assertIn("owid-co2-data.json", app.error)
		inputs = app.render_inputs()
		self.assertEqual(inputs["status"], "unavailable")
		self.assertEqual(inputs["polygons"], [])
		self.assertEqual(self.loop.pending(), 0)

	def test_undecodable_asset_is_unavailable(self):
		with open(self.co2_path, "wb") as f:
			f.write(b'{"x": "\xff\xfe"}')
		app = GlobeApp(self.settings, loop=self.loop)
		self.assertEqual(app.load(), AssetStatus.UNAVAILABLE)
		self.assertEqual(app.render_inputs()["status"], "unavailable")

	def test_user_events(self):
		app = GlobeApp(self.settings, loop=self.loop)
		app.load(defer_render=False)
		events = []
		app.add_listener(lambda state, event: events.append((event, state.year)))

		app.on_play_pressed()
		self.loop.advance(0.5)
		self.assertEqual(events, [("start", 2020), ("tick", 2018), ("tick", 2019)])
		app.on_emissions_type_changed(CO2_PER_CAPITA)
		self.assertFalse(app.render_inputs()["is_playing"])
		self.assertEqual(app.render_inputs()["emissions_type"], CO2_PER_CAPITA)

		app.on_play_pressed()
		app.on_stop_pressed()
		app.on_year_changed(2020)
		self.loop.advance(10)
		self.assertEqual(events[-1], ("year", 2020))
		self.assertEqual(self.loop.pending(), 0)
		app.close()


class TestSettings(unittest.TestCase):
	def test_env_overrides(self):
		env = {"MIN_YEAR": "1990", "MAX_YEAR": "2000", "TIMELAPSE_INTERVAL": "250", "OUT_DIR": "tmp_out"}
		saved = {k: os.environ.get(k) for k in env}
		os.environ.update(env)
		try:
			settings = load_settings(dotenv=False)
		finally:
			for k, v in saved.items():
				if v is None:
					os.environ.pop(k, None)
				else:
					os.environ[k] = v
		self.assertEqual((settings.min_year, settings.max_year, settings.interval), (1990, 2000, 250))
		self.assertEqual(settings.out_dir, "tmp_out")

	def test_overrides_are_validated(self):
		settings = Settings()
		self.assertEqual(with_overrides(settings, interval=250).interval, 250)
		self.assertIs(with_overrides(settings, interval=None).interval, settings.interval)
		for bad in (0, -100):
			with self.assertRaises(ValueError):
				with_overrides(settings, interval=bad)

	def test_invalid(self):
		with self.assertRaises(ValueError):
			Settings(min_year=2021, max_year=2020)
		with self.assertRaises(ValueError):
			Settings(interval=0)


if __name__ == "__main__":
	unittest.main()
