from visionloop.playback.csv_source import dedupe_headers, fields_from_headers, load_csv, parse_csv


def test_duplicate_headers_get_occurrence_suffixes():
    assert dedupe_headers(["Name", "Search", "Search", "Search"]) == ["Name", "Search_0", "Search_1", "Search_2"]


def test_dedupe_avoids_existing_header_names():
    assert dedupe_headers(["Search", "Search_0", "Search"]) == ["Search_1", "Search_0", "Search_2"]


def test_parse_skips_blank_lines():
    data = parse_csv("Name,Email\n\nAda,ada@example.com\n,\nBob,bob@example.com\n")
    assert data.headers == ["Name", "Email"]
    assert data.rows == [["Ada", "ada@example.com"], ["Bob", "bob@example.com"]]
    assert len(data) == 2


def test_parse_empty_text():
    data = parse_csv("")
    assert data.headers == [] and data.rows == []


def test_load_csv_strips_bom(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes("\ufeffName,City\nAda,London\n".encode("utf-8"))
    data = load_csv(path)
    assert data.headers == ["Name", "City"]
    assert data.rows == [["Ada", "London"]]


def test_fields_from_headers_strip_suffix():
    fields = fields_from_headers(["Search_0", "Search_1", "Email"])
    assert [(f.column_name, f.column_index, f.target_label) for f in fields] == [
        ("Search_0", 0, "Search"),
        ("Search_1", 1, "Search"),
        ("Email", 2, "Email"),
    ]
