from __future__ import annotations

import pytest

from impactreport.core import gradients
from impactreport.core.models import BRAND_SWATCH, DEFAULT_SECTION_ORDER, PendingFile
from impactreport.core.session import EditorSession, SavePolicy
from impactreport.core.storage import UploadError
from impactreport.core.store import EditorPhase, EditorStore, SelectFile, SetField


def _session(store: EditorStore, backend, policy=SavePolicy.BEST_EFFORT) -> EditorSession:
    return EditorSession(store, backend, policy)


def test_load_isolates_failing_sections(store, backend) -> None:
    backend.documents["hero"] = {"title": "Stored hero"}
    backend.documents["mission"] = {"title": "Stored mission"}
    backend.fail_fetch.add("impactSection")
    backend.raise_fetch.add("mission")
    warnings = []
    store.on_notice(lambda n: warnings.append(n) if n.level == "warning" else None)

    report = _session(store, backend).load()

    assert "hero" in report.loaded
    assert set(report.failed) >= {"impactSection", "mission"}
    assert store.value("hero", "title") == "Stored hero"
    assert store.value("mission", "title") == "Our Mission"
    assert store.phase is EditorPhase.CLEAN
    assert any("Mission" in n.message for n in warnings)


def test_load_reads_swatch_and_order(store, backend) -> None:
    backend.documents["defaults"] = {
        "colorSwatch": ["#000000", "#111111"],
        "sectionOrder": ["footer", "hero", "unknown"],
    }
    _session(store, backend).load()
    assert store.swatch[:2] == ["#000000", "#111111"]
    assert store.form.section_order[:2] == ["footer", "hero"]
    assert sorted(store.form.section_order) == sorted(DEFAULT_SECTION_ORDER)


def test_load_migrates_legacy_gradient_fields(store, backend) -> None:
    backend.documents["hero"] = {
        "degree": 45, "color1": "#ff0000", "color2": "#0000ff", "gradientOpacity": 0.5,
    }
    _session(store, backend).load()
    spec = gradients.parse(store.value("hero", "backgroundColor"))
    assert spec.degree == 45
    assert [s.alpha for s in spec.stops] == [0.5, 0.5]


def test_flex_solid_background_becomes_gradient_and_is_written_back(store, backend) -> None:
    backend.documents["flexB"] = {"sectionBgColor": "#ff0000", "visible": False}
    session = _session(store, backend)
    session.load()
    spec = gradients.parse(store.value("flexB", "sectionBgGradient"))
    assert [s.color_hex for s in spec.stops] == ["#ff0000", "#ff0000"]
    assert store.form.sections["flexB"]["enabled"] is False

    store.dispatch(SetField("flexB", "sectionBgGradient", "linear-gradient(90deg, #00ff00, #0000ff)"))
    assert session.save().ok
    saved = backend.documents["flexB"]
    assert saved["sectionBgGradient"] == "linear-gradient(90deg, #00ff00, #0000ff)"
    assert saved["sectionBgColor"] == "#00ff00"
    assert saved["visible"] is False
    assert "degree" not in saved


def test_save_runs_sections_in_order(store, backend) -> None:
    session = _session(store, backend)
    store.dispatch(SetField("hero", "title", "Hello"))

    report = session.save()

    assert report.ok
    assert backend.saves() == DEFAULT_SECTION_ORDER + ["defaults"]
    assert backend.documents["hero"]["title"] == "Hello"
    assert backend.documents["hero"]["color1"] == "#5038a0"
    assert backend.documents["defaults"]["sectionOrder"] == DEFAULT_SECTION_ORDER
    assert store.phase is EditorPhase.CLEAN
    assert store.state.snapshot.sections["hero"]["title"] == "Hello"


def test_failed_section_aborts_the_rest_best_effort(store, backend) -> None:
    session = _session(store, backend)
    store.dispatch(SetField("hero", "title", "Hello"))
    backend.fail_save.add("population")
    errors = []
    store.on_notice(lambda n: errors.append(n.message) if n.level == "error" else None)

    report = session.save()

    assert not report.ok
    assert report.partial
    assert report.saved == ["hero", "mission"]
    assert report.failed == "population"
    assert report.skipped == DEFAULT_SECTION_ORDER[3:]
    assert backend.saves() == ["hero", "mission", "population"]
    # earlier writes stay in place
    assert backend.documents["hero"]["title"] == "Hello"
    assert store.phase is EditorPhase.DIRTY
    assert errors and "population" in errors[0]


def test_all_or_nothing_restores_saved_sections(store, backend) -> None:
    backend.documents["hero"] = {"title": "Original"}
    session = _session(store, backend, SavePolicy.ALL_OR_NOTHING)
    session.load()
    store.dispatch(SetField("hero", "title", "Edited"))
    backend.fail_save.add("mission")

    report = session.save()

    assert report.rolled_back == ["hero"]
    assert not report.partial
    assert backend.documents["hero"]["title"] == "Original"
    assert store.value("hero", "title") == "Edited"
    assert store.dirty


def test_save_uploads_pending_files_first(store, backend, png_file) -> None:
    session = _session(store, backend)
    store.dispatch(SelectFile("hero", "backgroundImage", str(png_file)))

    report = session.save()

    assert report.ok
    url = "https://cdn.example.org/hero/backgroundImage.png"
    assert store.value("hero", "backgroundImage") == url
    assert backend.documents["hero"]["backgroundImage"] == url
    assert backend.calls.index(("put", "hero/backgroundImage.png")) < backend.calls.index(("save", "hero"))


def test_upload_failure_fails_the_save(store, backend, png_file) -> None:
    backend.fail_upload = True
    session = _session(store, backend)
    store.dispatch(SelectFile("hero", "backgroundImage", str(png_file)))

    report = session.save()

    assert report.failed == "hero"
    assert report.skipped == DEFAULT_SECTION_ORDER[1:]
    assert "upload failed" in report.error
    assert backend.saves() == []
    assert isinstance(store.value("hero", "backgroundImage"), PendingFile)
    assert store.dirty


def test_upload_failure_names_section_and_keeps_earlier_writes(store, backend, png_file) -> None:
    backend.fail_upload = True
    session = _session(store, backend)
    store.dispatch(SelectFile("curriculum", "image", str(png_file)))

    report = session.save()

    position = DEFAULT_SECTION_ORDER.index("curriculum")
    assert report.failed == "curriculum"
    assert report.saved == DEFAULT_SECTION_ORDER[:position]
    assert report.skipped == DEFAULT_SECTION_ORDER[position + 1:]
    assert report.partial
    assert "not saved: impactSection" in report.summary()
    assert "curriculum" not in backend.saves()


def test_upload_pending_resolves_url(store, backend, png_file) -> None:
    session = _session(store, backend)
    store.dispatch(SelectFile("curriculum", "image", str(png_file)))
    seen = []

    url = session.upload_pending("curriculum", "image", seen.append)

    assert url == "https://cdn.example.org/curriculum/image.png"
    assert store.value("curriculum", "image") == url
    assert seen == [100]
    assert not store.uploading


def test_upload_rejects_heic(store, backend, tmp_path) -> None:
    photo = tmp_path / "IMG_0001.HEIC"
    photo.write_bytes(b"\x00")
    session = _session(store, backend)
    store.dispatch(SelectFile("curriculum", "image", str(photo)))
    with pytest.raises(UploadError, match="HEIC"):
        session.upload_pending("curriculum", "image")
    assert not store.uploading


def test_discard_refetches_swatch(store, backend) -> None:
    session = _session(store, backend)
    session.load()
    store.dispatch(SetField("hero", "title", "Temp"))
    backend.documents["defaults"] = {"colorSwatch": ["#abcdef"]}

    assert session.discard()
    assert store.value("hero", "title") == ""
    assert store.swatch[0] == "#abcdef"


def test_discard_keeps_swatch_when_refetch_fails(store, backend) -> None:
    session = _session(store, backend)
    store.dispatch(SetField("hero", "title", "Temp"))
    backend.raise_fetch.add("defaults")

    assert session.discard()
    assert store.swatch == BRAND_SWATCH
    assert not session.discard()
