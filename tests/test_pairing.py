import io

from src.lifecycle.pairing import render_pairing_code


def test_renders_qr_and_raw_payload():
    out = io.StringIO()

    render_pairing_code("2@AbCdEf,ref,key", stream=out)

    text = out.getvalue()
    assert "Scan this code" in text
    assert "Pairing payload: 2@AbCdEf,ref,key" in text
    # The QR block is several lines of block characters.
    assert len(text.splitlines()) > 10
