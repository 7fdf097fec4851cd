from __future__ import annotations

import pytest

from impactreport.core.models import EditForm, PendingFile
from impactreport.core.store import (
    NAVIGATION_BLOCKED_MESSAGE,
    EditorPhase,
    EditorStore,
    FormLockedError,
    MoveSection,
    ReorderSections,
    ResolveUpload,
    SaveBlockedError,
    SelectFile,
    SetField,
    SetSwatchColor,
    ToggleSection,
)


def test_starts_clean(store: EditorStore) -> None:
    assert store.phase is EditorPhase.CLEAN
    assert store.form == store.state.snapshot


def test_discard_restores_snapshot(store: EditorStore) -> None:
    before = store.form.snapshot()
    store.dispatch(SetField("hero", "title", "Changed"))
    store.dispatch(SetField("impactSection", "stats", ["12: schools"]))
    store.dispatch(MoveSection("footer", -3))
    store.dispatch(ToggleSection("curriculum", False))
    store.dispatch(SelectFile("mission", "backgroundImage", "/tmp/a.png"))
    assert store.dirty

    assert store.discard()
    assert store.form == before
    assert store.form is not store.state.snapshot
    assert store.phase is EditorPhase.CLEAN


def test_discard_only_from_dirty(store: EditorStore) -> None:
    notices = []
    store.on_notice(notices.append)
    assert store.discard() is False
    assert notices == []


def test_restored_form_is_independent_of_snapshot(store: EditorStore) -> None:
    store.dispatch(SetField("impactSection", "stats", ["1: a"]))
    store.discard()
    store.form.sections["impactSection"]["stats"].append("2: b")
    assert store.state.snapshot.sections["impactSection"]["stats"] == []


def test_unchanged_value_does_not_dirty(store: EditorStore) -> None:
    assert store.dispatch(SetField("mission", "title", "Our Mission")) is False
    assert store.dispatch(MoveSection("hero", -1)) is False
    assert not store.dirty


def test_dirty_guard_blocks_navigation(store: EditorStore) -> None:
    notices = []
    store.on_notice(notices.append)
    assert store.select_section("mission")
    store.dispatch(SetField("mission", "title", "New"))

    assert store.select_section("impactSection") is False
    assert store.active_section == "mission"
    assert [n.message for n in notices] == [NAVIGATION_BLOCKED_MESSAGE]
    assert store.select_section("mission")


def test_mutation_while_saving_is_rejected(store: EditorStore) -> None:
    store.dispatch(SetField("hero", "title", "x"))
    store.begin_save()
    with pytest.raises(FormLockedError):
        store.dispatch(SetField("hero", "title", "y"))
    with pytest.raises(SaveBlockedError):
        store.begin_save()


def test_upload_blocks_save(store: EditorStore) -> None:
    store.dispatch(SetField("hero", "title", "x"))
    store.begin_upload("hero.backgroundImage")
    with pytest.raises(SaveBlockedError):
        store.begin_save()
    store.end_upload("hero.backgroundImage")
    store.begin_save()
    assert store.saving


def test_finish_save_success_takes_new_snapshot(store: EditorStore) -> None:
    notices = []
    store.on_notice(notices.append)
    store.dispatch(SetField("hero", "title", "Saved title"))
    store.begin_save()
    store.finish_save(True)
    assert store.phase is EditorPhase.CLEAN
    assert store.state.snapshot.sections["hero"]["title"] == "Saved title"
    assert notices[-1].level == "success"


def test_finish_save_failure_stays_dirty(store: EditorStore) -> None:
    notices = []
    store.on_notice(notices.append)
    store.dispatch(SetField("hero", "title", "Unsaved"))
    store.begin_save()
    store.finish_save(False, "Failed to save hero")
    assert store.phase is EditorPhase.DIRTY
    assert store.state.last_error == "Failed to save hero"
    assert notices[-1].level == "error"
    assert store.state.snapshot.sections["hero"]["title"] == ""


def test_resolve_upload_ignores_replaced_selection(store: EditorStore) -> None:
    store.dispatch(SelectFile("hero", "backgroundImage", "/tmp/one.png"))
    store.dispatch(SelectFile("hero", "backgroundImage", "/tmp/two.png"))
    assert store.dispatch(ResolveUpload("hero", "backgroundImage", "/tmp/one.png", "u1")) is False
    assert store.value("hero", "backgroundImage") == PendingFile("/tmp/two.png")
    assert store.dispatch(ResolveUpload("hero", "backgroundImage", "/tmp/two.png", "u2"))
    assert store.value("hero", "backgroundImage") == "u2"


def test_select_file_requires_image_field(store: EditorStore) -> None:
    with pytest.raises(ValueError):
        store.dispatch(SelectFile("hero", "title", "/tmp/a.png"))
    with pytest.raises(KeyError):
        store.dispatch(SetField("hero", "nope", 1))


def test_reorder_must_keep_sections(store: EditorStore) -> None:
    with pytest.raises(ValueError):
        store.dispatch(ReorderSections(("hero",)))
    order = tuple(reversed(store.form.section_order))
    assert store.dispatch(ReorderSections(order))
    assert store.form.section_order == list(order)


def test_swatch_edit_dirties_but_is_not_restored_by_discard(store: EditorStore) -> None:
    store.dispatch(SetSwatchColor(0, "#000000"))
    assert store.dirty
    store.discard()
    assert store.swatch[0] == "#000000"


def test_reset_installs_clean_form() -> None:
    store = EditorStore()
    calls = []
    store.subscribe(lambda s: calls.append(s.phase))
    form = EditForm.defaults()
    form.sections["hero"]["title"] = "Loaded"
    store.reset(form, ["#111111"])
    assert store.phase is EditorPhase.CLEAN
    assert store.state.snapshot == form
    assert store.swatch[0] == "#111111" and len(store.swatch) == 6
    assert calls == [EditorPhase.CLEAN]
