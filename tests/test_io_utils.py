import json
import os
import tempfile
import unittest

import pandas as pd

from co2globe.io_utils import (
	AssetsUnavailableError,
	load_emissions_dataset,
	load_geometry,
	load_wide_emissions_csv,
	write_table,
)

WIDE_CSV = """\
"Data Source","World Development Indicators",

"Last Updated Date","2022-01-26",

"Country Name","Country Code","Indicator Name","Indicator Code","1960","1961","1962","1963","1964",
"Aruba","ABW","CO2 emissions (kt)","EN.ATM.CO2E.KT","","","","","",
"France","FRA","CO2 emissions (kt)","EN.ATM.CO2E.KT","270000.5","","280,000","290000","300000",
"""


class TestAssets(unittest.TestCase):
	def setUp(self):
		self.tmp = tempfile.TemporaryDirectory()
		self.dir = self.tmp.name

	def tearDown(self):
		self.tmp.cleanup()

	def _write(self, name, text):
		path = os.path.join(self.dir, name)
		with open(path, "w", encoding="utf-8") as f:
			f.write(text)
		return path

	def test_missing_file(self):
		with self.assertRaises(AssetsUnavailableError) as ctx:
			load_geometry(os.path.join(self.dir, "countries.geojson"))
		self.assertIn("file not found", str(ctx.exception))

	def test_invalid_json(self):
		path = self._write("countries.geojson", "{not json")
		with self.assertRaises(AssetsUnavailableError):
			load_geometry(path)

	def test_non_utf8_json(self):
		path = os.path.join(self.dir, "owid-co2-data.json")
		with open(path, "wb") as f:
			f.write(b'{"x": "\xff\xfe"}')
		with self.assertRaises(AssetsUnavailableError) as ctx:
			load_emissions_dataset(path)
		self.assertIn("UnicodeDecodeError", str(ctx.exception))

	def test_geometry_shape(self):
		path = self._write("countries.geojson", json.dumps({"type": "FeatureCollection"}))
		with self.assertRaises(AssetsUnavailableError):
			load_geometry(path)
		path = self._write("ok.geojson", json.dumps({"features": [{"type": "Feature", "properties": None}]}))
		self.assertEqual(load_geometry(path)["features"][0]["properties"], {})

	def test_emissions_json(self):
		path = self._write("co2.json", json.dumps({"France": {"iso_code": "FRA", "data": []}}))
		self.assertIn("France", load_emissions_dataset(path))
		path = self._write("bad.json", json.dumps(42))
		with self.assertRaises(AssetsUnavailableError):
			load_emissions_dataset(path)

	def test_wide_csv(self):
		path = self._write("co2.csv", WIDE_CSV)
		data = load_wide_emissions_csv(path)
		self.assertEqual(sorted(data), ["ABW", "FRA"])
		self.assertEqual(data["ABW"]["data"], [])
		self.assertEqual(data["FRA"]["country"], "France")
		self.assertEqual(
			data["FRA"]["data"],
			[
				{"year": 1960, "co2": 270000.5},
				{"year": 1962, "co2": 280000.0},
				{"year": 1963, "co2": 290000.0},
				{"year": 1964, "co2": 300000.0},
			],
		)
		self.assertEqual(load_emissions_dataset(path)["FRA"]["iso_code"], "FRA")

	def test_wide_csv_without_year_header(self):
		path = self._write("co2.csv", "a,b\n1,2\n")
		with self.assertRaises(AssetsUnavailableError):
			load_emissions_dataset(path)

	def test_write_table(self):
		df = pd.DataFrame({"iso_a3": ["FRA"], "altitude": [0.5]})
		path = write_table(df, os.path.join(self.dir, "snap.csv"))
		self.assertEqual(pd.read_csv(path)["iso_a3"].tolist(), ["FRA"])
		with self.assertRaises(ValueError):
			write_table(df, os.path.join(self.dir, "snap.txt"))


if __name__ == "__main__":
	unittest.main()
