import json
import os
import sys

import numpy as np
import pytest
from PIL import Image

import s_pgrid
import s_pgrid_db
import utils_video
from s_pgrid import GridRun


def run_grid(root, **config):
    config.setdefault("copy_viewer", False)
    run = GridRun(dict(config, fqdn=str(root)))
    summary = run.run()
    return run, summary


def read_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def read_bytes(path):
    with open(path, "rb") as f:
        return f.read()


@pytest.fixture
def library(lib, make_image, make_corrupt):
    """lib/a with five valid JPEGs and one corrupt one."""
    a = lib / "a"
    for i, size in enumerate([(64, 48), (48, 64), (100, 100), (30, 20), (200, 50)]):
        make_image(a / f"{i}.jpg", size=size, color=(40 * i, 100, 200))
    make_corrupt(a / "broken.jpg")
    return lib


class TestScenario:

    def test_first_run(self, library, tmp_path):
        a = str(library / "a")
        run, summary = run_grid(library)

        cache = read_json(library / ".a_pgrid.json")
        assert len(cache) == 6
        assert cache["broken.jpg"]["size"] == {"width": 0, "height": 0}
        assert cache["0.jpg"]["size"] == {"width": 64, "height": 48}
        assert cache["4.jpg"]["size"] == {"width": 200, "height": 50}

        assert run.dir_stats[a] == {"processed": 6, "new": 6, "grid": True}
        assert summary["directories"] == 2
        assert summary["files"] == 6
        assert summary["new_files"] == 6
        assert summary["grids_generated"] == 2
        assert summary["dirs_failed"] == 0

        grid = library / "a_pgrid.jpg"
        with Image.open(grid) as img:
            assert img.size == (720, 720)
            assert img.format == "JPEG"

        metadata = s_pgrid_db.read_grid_metadata(str(grid))
        assert metadata["version"] == 2
        assert metadata["files"] == cache

        # the root's cache covers the whole subtree
        root_cache = read_json(tmp_path / ".lib_pgrid.json")
        assert set(root_cache) == {f"a/{k}" for k in cache}

    def test_rerun_is_idempotent(self, library, tmp_path):
        run_grid(library)
        first = [read_bytes(library / ".a_pgrid.json"), read_bytes(tmp_path / ".lib_pgrid.json")]

        run, summary = run_grid(library)
        second = [read_bytes(library / ".a_pgrid.json"), read_bytes(tmp_path / ".lib_pgrid.json")]

        assert first == second
        assert summary["new_files"] == 0
        assert run.dir_stats[str(library / "a")] == {"processed": 6, "new": 0, "grid": True}

    def test_rerun_never_reprobes_unchanged_files(self, library, monkeypatch):
        run_grid(library)

        def failing_probe(fqfn):
            raise RuntimeError(f"unexpected probe of {fqfn}")

        monkeypatch.setattr(s_pgrid_db, "probe_file", failing_probe)
        run, summary = run_grid(library)

        assert summary["new_files"] == 0
        assert summary["dirs_failed"] == 0
        assert read_json(library / ".a_pgrid.json")["2.jpg"]["size"] == {"width": 100, "height": 100}

    def test_deleted_file_leaves_every_cache(self, library, tmp_path):
        run_grid(library)
        os.remove(library / "a" / "3.jpg")

        run_grid(library)

        assert "3.jpg" not in read_json(library / ".a_pgrid.json")
        assert "a/3.jpg" not in read_json(tmp_path / ".lib_pgrid.json")
        assert len(read_json(tmp_path / ".lib_pgrid.json")) == 5

    def test_parent_cache_recovered_from_child(self, library, tmp_path, monkeypatch):
        run_grid(library)
        os.remove(tmp_path / ".lib_pgrid.json")
        os.remove(tmp_path / "lib_pgrid.jpg")

        def failing_probe(fqfn):
            raise RuntimeError(f"unexpected probe of {fqfn}")

        monkeypatch.setattr(s_pgrid_db, "probe_file", failing_probe)
        run, summary = run_grid(library)

        assert summary["new_files"] == 0
        root_cache = read_json(tmp_path / ".lib_pgrid.json")
        assert root_cache["a/1.jpg"]["size"] == {"width": 48, "height": 64}


class TestOrdering:

    def test_children_finish_before_parents(self, lib, make_image, monkeypatch):
        make_image(lib / "a" / "b" / "1.jpg")
        make_image(lib / "a" / "2.jpg")
        make_image(lib / "c" / "3.jpg")

        events = []
        save_cache = s_pgrid_db.save_cache
        write_index = s_pgrid_db.write_index

        def recording_save(directory, cache):
            events.append(("cache", directory))
            save_cache(directory, cache)

        def recording_index(directory, entries):
            events.append(("index", directory))
            write_index(directory, entries)

        monkeypatch.setattr(s_pgrid_db, "save_cache", recording_save)
        monkeypatch.setattr(s_pgrid_db, "write_index", recording_index)

        run, _ = run_grid(lib)

        dirs = [str(lib / "a" / "b"), str(lib / "a"), str(lib / "c"), str(lib)]
        assert set(run.processed_order) == set(dirs)
        for d in dirs:
            parent = os.path.dirname(d)
            if parent not in dirs:
                continue
            assert run.processed_order.index(d) < run.processed_order.index(parent)
            assert events.index(("index", d)) < events.index(("index", parent))
            assert events.index(("cache", d)) < events.index(("index", parent))


class TestIndex:

    def test_root_index_covers_all_descendants(self, lib, make_image):
        make_image(lib / "a" / "1.jpg")
        make_image(lib / "a" / "deep" / "2.jpg")
        make_image(lib / "b" / "3.jpg")
        (lib / "empty").mkdir()

        run, summary = run_grid(lib)

        entries = s_pgrid_db.read_index(str(lib))
        assert [e["path"] for e in entries] == [".", "a", "a/deep", "b"]
        assert summary["index_size"] == 4
        own = entries[0]
        assert own["fileCount"] == 3
        assert own["latestMtime"] == max(e["latestMtime"] for e in entries[1:])

        assert [e["path"] for e in s_pgrid_db.read_index(str(lib / "a"))] == [".", "deep"]
        assert not (lib / "empty" / ".pgrid_index.json").exists()

    def test_grid_trailer_lists_descendant_directories(self, lib, make_image, tmp_path):
        make_image(lib / "a" / "1.jpg")
        make_image(lib / "b" / "2.jpg")

        run_grid(lib)

        metadata = s_pgrid_db.read_grid_metadata(str(tmp_path / "lib_pgrid.jpg"))
        assert set(metadata["directories"]) == {"a", "b"}
        assert set(metadata["files"]) == {"a/1.jpg", "b/2.jpg"}


class TestMosaic:

    def test_undecodable_directory_gets_no_grid(self, lib, make_corrupt):
        make_corrupt(lib / "bad" / "x.jpg")
        make_corrupt(lib / "bad" / "y.png")

        run, summary = run_grid(lib)

        assert not (lib / "bad_pgrid.jpg").exists()
        assert summary["grids_generated"] == 0
        assert summary["grids_skipped"] == 2
        assert run.dir_stats[str(lib / "bad")]["grid"] is False
        # the cache is still written
        assert len(read_json(lib / ".bad_pgrid.json")) == 2

    def test_unused_slots_stay_black(self, lib, make_image):
        make_image(lib / "a" / "only.jpg", size=(90, 60), color=(255, 0, 0))

        run_grid(lib)

        with Image.open(lib / "a_pgrid.jpg") as img:
            arr = np.asarray(img.convert("RGB")).astype(int)

        assert arr[:340, :340, 0].mean() > 200
        assert arr[:340, :340, 1:].mean() < 40
        assert arr[380:, 380:].mean() < 5
        assert arr[380:, :340].mean() < 5
        assert arr[:340, 380:].mean() < 5

    def test_custom_grid_size(self, lib, make_image):
        make_image(lib / "a" / "1.jpg")

        run_grid(lib, cell_size=100, grid_cells=3)

        with Image.open(lib / "a_pgrid.jpg") as img:
            assert img.size == (300, 300)

    def test_viewer_copied_next_to_grids(self, lib, make_image, tmp_path):
        make_image(lib / "a" / "1.jpg")
        source = tmp_path / "viewer-src.html"
        source.write_text("<html>viewer</html>")

        run_grid(lib, copy_viewer=True, viewer_source=str(source))

        assert (lib / "0grid-viewer.html").read_text() == "<html>viewer</html>"
        assert (tmp_path / "0grid-viewer.html").exists()

    def test_missing_viewer_is_not_fatal(self, lib, make_image, tmp_path):
        make_image(lib / "a" / "1.jpg")

        run, summary = run_grid(lib, copy_viewer=True, viewer_source=str(tmp_path / "nope.html"))

        assert summary["grids_generated"] == 2
        assert summary["dirs_failed"] == 0
        assert not (lib / "0grid-viewer.html").exists()


class TestVideo:

    def test_video_cells_and_dimensions(self, lib, monkeypatch):
        clip = lib / "v" / "clip.mp4"
        clip.parent.mkdir()
        clip.write_bytes(b"\x00" * 128)

        monkeypatch.setattr(utils_video, "probe_dimensions", lambda fqfn: (1920, 1080))
        monkeypatch.setattr(utils_video, "extract_frame",
                            lambda fqfn, w, h, cap=5.0: Image.new("RGB", (w * 2, h), (0, 0, 255)))

        run, summary = run_grid(lib)

        cache = read_json(lib / ".v_pgrid.json")
        assert cache["clip.mp4"]["size"] == {"width": 1920, "height": 1080}
        assert summary["grids_generated"] == 2
        with Image.open(lib / "v_pgrid.jpg") as img:
            arr = np.asarray(img.convert("RGB")).astype(int)
        assert arr[:340, :340, 2].mean() > 200

    def test_failed_frame_grab_skips_grid(self, lib, monkeypatch):
        clip = lib / "v" / "clip.webm"
        clip.parent.mkdir()
        clip.write_bytes(b"\x00" * 128)

        monkeypatch.setattr(utils_video, "probe_dimensions", lambda fqfn: (0, 0))
        monkeypatch.setattr(utils_video, "extract_frame", lambda fqfn, w, h, cap=5.0: None)

        run, summary = run_grid(lib)

        assert summary["grids_generated"] == 0
        assert summary["dirs_failed"] == 0
        assert read_json(lib / ".v_pgrid.json")["clip.webm"]["size"] == {"width": 0, "height": 0}


class TestFailures:

    def test_failing_directory_does_not_stop_siblings(self, lib, make_image, tmp_path, monkeypatch):
        make_image(lib / "bad" / "1.jpg")
        make_image(lib / "good" / "2.jpg")

        compose = GridRun.compose_directory_grid

        def exploding_compose(self, directory, files, cache):
            if os.path.basename(directory) == "bad":
                raise RuntimeError("boom")
            return compose(self, directory, files, cache)

        monkeypatch.setattr(GridRun, "compose_directory_grid", exploding_compose)

        run, summary = run_grid(lib)

        assert summary["dirs_failed"] == 1
        assert (lib / "good_pgrid.jpg").exists()
        assert (tmp_path / "lib_pgrid.jpg").exists()
        assert len(run.processed_order) == 3

    @pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that accepts non UTF-8 names")
    def test_non_utf8_file_name_keeps_ancestors(self, lib, make_image, tmp_path):
        bad_name = os.fsdecode(b"bad\xff.jpg")
        make_image(lib / "a" / "ok.jpg")
        make_image(lib / "a" / bad_name)
        make_image(lib / "b" / "fine.jpg")

        run, summary = run_grid(lib)

        assert summary["dirs_failed"] == 0
        assert summary["index_size"] == 3
        assert [e["path"] for e in s_pgrid_db.read_index(str(lib))] == [".", "a", "b"]

        assert set(read_json(lib / ".a_pgrid.json")) == {"ok.jpg", bad_name}
        expected = {"a/ok.jpg", f"a/{bad_name}", "b/fine.jpg"}
        assert set(read_json(tmp_path / ".lib_pgrid.json")) == expected
        assert set(s_pgrid_db.read_grid_metadata(str(tmp_path / "lib_pgrid.jpg"))["files"]) == expected

        # escaped keys read back unchanged, so nothing is probed again
        run, summary = run_grid(lib)
        assert summary["new_files"] == 0
        assert summary["dirs_failed"] == 0


class TestConfig:

    def test_defaults(self, lib):
        run = GridRun({"fqdn": str(lib)})
        assert (run.cell_size, run.grid_cells, run.jpeg_quality, run.max_workers) == (360, 2, 85, 10)
        assert run.copy_viewer is True

    def test_string_values_are_coerced(self, lib):
        run = GridRun({"fqdn": str(lib), "cell_size": "120", "jpeg_quality": None, "copy_viewer": "no"})
        assert run.cell_size == 120
        assert run.jpeg_quality == 85
        assert run.copy_viewer is False

    @pytest.mark.parametrize(
        "override",
        [{"cell_size": "abc"}, {"cell_size": 0}, {"grid_cells": -1}, {"jpeg_quality": 101},
         {"jpeg_quality": "0"}, {"max_workers": 0}],
    )
    def test_invalid_values(self, lib, override):
        with pytest.raises(ValueError):
            GridRun(dict(override, fqdn=str(lib)))

    def test_root_is_required(self):
        with pytest.raises(ValueError):
            GridRun({})

    def test_result_containers_are_not_shared(self, lib):
        one = GridRun({"fqdn": str(lib)})
        two = GridRun({"fqdn": str(lib)})
        one.dir_stats["x"] = 1
        one.viewer_dirs.add("y")
        assert two.dir_stats == {}
        assert two.viewer_dirs == set()
        assert s_pgrid.grid_defaults["dir_stats"][0] == {}
