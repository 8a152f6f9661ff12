import io
import os
import tempfile
import unittest
import zipfile
from unittest import mock

import pipeline.genotype_parser as genotype_parser
from pipeline.errors import GenotypeParseError
from pipeline.genotype_parser import (
    build_genetic_profile,
    decode_upload,
    parse_genotype_content,
    parse_genotype_file,
    validate_genotype_content,
)


RAW_23ANDME = (
    "# This data file generated by 23andMe\n"
    "# rsid\tchromosome\tposition\tgenotype\n"
    "rs1065852\t22\t42526694\tTT\n"
    "rs4244285\t10\t96541616\tAG\n"
    "rs1799853\t10\t96702047\tCT\n"
    "rs776746\t7\t99270539\tCC\n"
    "rs762551\t15\t75041917\tAC\n"
    "rs0000001\t1\t100\tGG\n"
    "\n"
    "rs9999999\t1\n"
)


class GenotypeParserTests(unittest.TestCase):
    def test_target_snps_map_to_genes(self):
        data = parse_genotype_content(RAW_23ANDME)
        self.assertEqual(
            data,
            {
                "CYP2D6": "TT",
                "CYP2C19": "AG",
                "CYP2C9": "CT",
                "CYP3A5": "CC",
                "CYP1A2": "AC",
            },
        )

    def test_windows_line_endings(self):
        data = parse_genotype_content(RAW_23ANDME.replace("\n", "\r\n"))
        self.assertEqual(data["CYP2D6"], "TT")
        self.assertEqual(data["CYP1A2"], "AC")

    def test_profile_exposes_gene_properties(self):
        profile = build_genetic_profile(RAW_23ANDME)
        self.assertEqual(profile.cyp2d6, "TT")
        self.assertEqual(profile.cyp2c19, "AG")
        self.assertEqual(profile.cyp3a5, "CC")
        self.assertIsNone(profile.cyp3a4)

    def test_comment_only_file_is_rejected(self):
        ok, message = validate_genotype_content("# header only\n\n")
        self.assertFalse(ok)
        self.assertIn("No genotype data", message)
        with self.assertRaises(GenotypeParseError):
            build_genetic_profile("# header only\n")

    def test_non_tabular_file_is_rejected(self):
        with self.assertRaises(GenotypeParseError):
            build_genetic_profile("this is not a genotype file\nat all\n")

    def test_file_without_target_snps_gives_empty_profile(self):
        profile = build_genetic_profile("rs0000001\t1\t100\tGG\n")
        self.assertEqual(profile.cytochrome_data, {})

    def test_zip_upload_is_unpacked(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("genome_Jane_Doe.txt", RAW_23ANDME)
        text = decode_upload(buffer.getvalue(), "genome.zip")
        self.assertEqual(parse_genotype_content(text)["CYP2C9"], "CT")

    def test_zip_without_txt_is_rejected(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("readme.md", "nothing here")
        with self.assertRaises(GenotypeParseError):
            decode_upload(buffer.getvalue(), "genome.zip")

    def test_oversized_zip_member_is_rejected(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("genome.txt", RAW_23ANDME * 10)
        with mock.patch.object(genotype_parser, "MAX_DNA_UPLOAD_BYTES", len(RAW_23ANDME)):
            with self.assertRaises(GenotypeParseError) as ctx:
                decode_upload(buffer.getvalue(), "genome.zip")
        self.assertIn("exceeds", str(ctx.exception))

    def test_utf8_bom_is_stripped(self):
        text = decode_upload(("\ufeff" + "rs1065852\t22\t42526694\tTT\n").encode("utf-8"), "genome.txt")
        self.assertEqual(parse_genotype_content(text), {"CYP2D6": "TT"})

    def test_undecodable_bytes_are_rejected(self):
        with self.assertRaises(GenotypeParseError):
            decode_upload(b"\xff\xfe\xfa\x00", "genome.txt")

    def test_parse_file_from_disk(self):
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False, encoding="utf-8") as fh:
            fh.write(RAW_23ANDME)
            path = fh.name
        try:
            profile = parse_genotype_file(path)
        finally:
            os.unlink(path)
        self.assertEqual(profile.cyp2d6, "TT")


if __name__ == "__main__":
    unittest.main()
