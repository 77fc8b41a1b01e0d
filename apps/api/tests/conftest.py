from __future__ import annotations

from pathlib import Path

import pytest

from citecheck_core.errors import UpstreamUnavailable

PAPER_TEI = """<?xml version="1.0" encoding="UTF-8"?>
<TEI xmlns="http://www.tei-c.org/ns/1.0">
  <teiHeader>
    <fileDesc>
      <titleStmt><title level="a" type="main">Attention over Molecular Graphs</title></titleStmt>
      <sourceDesc>
        <biblStruct>
          <analytic>
            <author><persName><forename type="first">Grace</forename><surname>Hopper</surname></persName></author>
          </analytic>
          <monogr><imprint><date type="published" when="2022" /></imprint></monogr>
        </biblStruct>
      </sourceDesc>
    </fileDesc>
  </teiHeader>
  <text>
    <body>
      <div>
        <p>Message passing unifies earlier models <ref type="bibr" target="#b0">[1]</ref>. Residual connections help depth <ref type="bibr" target="#b1">[2]</ref>.</p>
      </div>
    </body>
    <back>
      <div type="references">
        <listBibl>
          <biblStruct xml:id="b0">
            <analytic>
              <title level="a" type="main">Neural message passing for quantum chemistry</title>
              <author><persName><forename type="first">Justin</forename><surname>Gilmer</surname></persName></author>
            </analytic>
            <monogr><imprint><date type="published" when="2017" /></imprint></monogr>
          </biblStruct>
          <biblStruct xml:id="b1">
            <analytic>
              <title level="a" type="main">Deep residual learning for image recognition</title>
              <author><persName><forename type="first">Kaiming</forename><surname>He</surname></persName></author>
            </analytic>
            <monogr><imprint><date type="published" when="2016" /></imprint></monogr>
          </biblStruct>
        </listBibl>
      </div>
    </back>
  </text>
</TEI>
"""


class FakeGrobid:
    base_url = "http://grobid.test"

    def __init__(self, tei: str = PAPER_TEI, alive: bool = True) -> None:
        self.tei = tei
        self.alive = alive

    def is_alive(self) -> bool:
        return self.alive

    def ensure_alive(self) -> None:
        if not self.alive:
            raise UpstreamUnavailable("extraction", f"not reachable at {self.base_url}")

    def process_fulltext(self, pdf_path, **kwargs) -> str:
        self.ensure_alive()
        return self.tei


class FakeOracle:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return '{"isVerified": true, "confidenceScore": 0.9, "matchLocation": "Abstract", "explanation": "Supported."}'


@pytest.fixture
def grobid() -> FakeGrobid:
    return FakeGrobid()


@pytest.fixture
def offline_grobid() -> FakeGrobid:
    return FakeGrobid(alive=False)


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF-1.4\n")
    return path


@pytest.fixture(autouse=True)
def _no_ambient_keys(monkeypatch) -> None:
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "DOCUMENT_DB_PATH", "MISSING_REF_HANDLING", "GROBID_URL"):
        monkeypatch.delenv(name, raising=False)
