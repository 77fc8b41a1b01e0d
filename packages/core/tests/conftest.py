from __future__ import annotations

import pytest

SAMPLE_TEI = """<?xml version="1.0" encoding="UTF-8"?>
<TEI xmlns="http://www.tei-c.org/ns/1.0" xmlns:xlink="http://www.w3.org/1999/xlink">
  <teiHeader>
    <fileDesc>
      <titleStmt>
        <title level="a" type="main">Graph Networks for Chemistry</title>
      </titleStmt>
      <sourceDesc>
        <biblStruct>
          <analytic>
            <author><persName><forename type="first">Ada</forename><surname>Lovelace</surname></persName></author>
            <author><persName><forename type="first">Alan</forename><forename type="middle">M</forename><surname>Turing</surname></persName></author>
            <title level="a" type="main">Graph Networks for Chemistry</title>
          </analytic>
          <monogr>
            <title level="j">Journal of Chemical Computing</title>
            <imprint><date type="published" when="2021-05-01">May 2021</date></imprint>
          </monogr>
          <idno type="DOI">10.1234/gnc.2021</idno>
        </biblStruct>
      </sourceDesc>
    </fileDesc>
  </teiHeader>
  <text>
    <body>
      <div>
        <p>Graph models are popular <ref type="bibr" target="#b0" coords="2,100.0,200.0,30.0,10.0">[1]</ref>. Later work extended them <ref type="bibr" target="#b0 #b1">[1,2]</ref>. Nobody cites this <ref type="bibr" target="#b9">[10]</ref>.</p>
        <p>Unlinked mention <ref type="bibr">[3]</ref> appears here.</p>
      </div>
    </body>
    <back>
      <div type="references">
        <listBibl>
          <biblStruct xml:id="b0">
            <analytic>
              <title level="a" type="main">A graph-convolutional neural network model for chemical reactivity</title>
              <author><persName><forename type="first">Connor</forename><forename type="middle">W</forename><surname>Coley</surname></persName></author>
            </analytic>
            <monogr>
              <title level="j">Chemical Science</title>
              <imprint>
                <biblScope unit="volume">10</biblScope>
                <biblScope unit="issue">2</biblScope>
                <biblScope unit="page" from="370" to="377" />
                <date type="published" when="2019">2019</date>
              </imprint>
            </monogr>
            <idno type="DOI">10.1039/C8SC04228D</idno>
            <note type="raw_reference">Coley CW et al. A graph-convolutional neural network model. Chem Sci 2019.</note>
          </biblStruct>
          <biblStruct xml:id="b1">
            <analytic>
              <title level="a" type="main">Neural message passing for quantum chemistry</title>
              <author><persName><forename type="first">Justin</forename><surname>Gilmer</surname></persName></author>
            </analytic>
            <monogr>
              <title level="m">Proceedings of ICML</title>
              <imprint><date type="published" when="2017" /></imprint>
            </monogr>
          </biblStruct>
          <biblStruct>
            <monogr>
              <title level="m">Short</title>
            </monogr>
          </biblStruct>
        </listBibl>
      </div>
    </back>
  </text>
</TEI>
"""


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, text: str = "") -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


@pytest.fixture
def sample_tei() -> str:
    return SAMPLE_TEI


@pytest.fixture
def fake_response():
    return FakeResponse
