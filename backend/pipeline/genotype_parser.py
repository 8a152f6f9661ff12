"""
Raw DNA file parser (23andMe-style export).

Format: one tab-delimited call per line - rsid, chromosome, position, genotype.
Lines starting with '#' and blank lines are skipped. Only SNPs listed in the
rules file's target_snps table are kept, keyed by gene symbol.
"""

import io
import logging
import zipfile
from datetime import datetime
from typing import Dict, Optional, Tuple

from models.constants import MAX_DNA_UPLOAD_BYTES
from models.schemas import GeneticProfile
from pipeline.errors import GenotypeParseError
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)
_RULES = get_rules()

_ZIP_MAGIC = b"PK\x03\x04"


def parse_genotype_content(content: str) -> Dict[str, str]:
    """
    Parse raw genotype text into a gene -> genotype mapping.

    Args:
        content: Raw file content

    Returns:
        Mapping of gene symbol to genotype call (later lines win for duplicate rsIDs)
    """
    cytochrome_data: Dict[str, str] = {}
    line_number = 0

    for line in content.splitlines():
        line_number += 1

        if not line or line.startswith("#"):
            continue

        fields = line.split("\t")
        if len(fields) < 4:
            logger.debug(f"Line {line_number}: Insufficient columns, skipping")
            continue

        rsid = fields[0].strip()
        genotype = fields[3].strip()

        gene = _RULES.target_snps.get(rsid)
        if gene:
            cytochrome_data[gene] = genotype

    logger.info(f"Parsed {len(cytochrome_data)} target genotypes from raw DNA file")
    return cytochrome_data


def validate_genotype_content(content: str) -> Tuple[bool, str]:
    """
    Validate raw genotype content.

    Returns:
        (is_valid, error_message)
    """
    data_lines = [l for l in content.splitlines() if l.strip() and not l.startswith("#")]
    if not data_lines:
        return False, "No genotype data found"

    if not any(len(l.split("\t")) >= 4 for l in data_lines):
        return False, "No tab-delimited rsid/chromosome/position/genotype rows found"

    return True, "Valid raw genotype format"


def decode_upload(raw: bytes, filename: Optional[str] = None) -> str:
    """
    Decode an uploaded raw DNA file. Accepts plain text or a zip archive holding one .txt file.
    """
    if raw.startswith(_ZIP_MAGIC) or (filename or "").lower().endswith(".zip"):
        try:
            with zipfile.ZipFile(io.BytesIO(raw)) as archive:
                members = [n for n in archive.namelist() if n.lower().endswith(".txt")]
                if not members:
                    raise GenotypeParseError("Zip archive does not contain a .txt genotype file")
                if archive.getinfo(members[0]).file_size > MAX_DNA_UPLOAD_BYTES:
                    raise GenotypeParseError("Unzipped DNA file exceeds 50MB limit")
                raw = archive.read(members[0])
        except zipfile.BadZipFile as exc:
            raise GenotypeParseError(f"Invalid zip archive: {exc}") from exc

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise GenotypeParseError("Invalid genotype file encoding") from exc


def build_genetic_profile(content: str, upload_date: Optional[datetime] = None) -> GeneticProfile:
    is_valid, message = validate_genotype_content(content)
    if not is_valid:
        raise GenotypeParseError(message)

    cytochrome_data = parse_genotype_content(content)
    if upload_date is None:
        return GeneticProfile(cytochrome_data=cytochrome_data)
    return GeneticProfile(cytochrome_data=cytochrome_data, upload_date=upload_date)


def parse_genotype_file(file_path: str) -> GeneticProfile:
    """
    Parse a raw DNA file from disk.
    """
    with open(file_path, "rb") as f:
        raw = f.read()
    return build_genetic_profile(decode_upload(raw, file_path))
