import pytest

from statement_importer.domain.csv_table import (
    CSVEmptyError,
    CSVReadError,
    CSVUnreadableError,
    read_csv,
    read_csv_file,
    split_line,
)


def test_quoted_field_with_comma_and_escaped_quote():
    table = read_csv('Description,Amount\n"a, ""b"" c",1.00\n')
    assert table.headers == ["Description", "Amount"]
    assert table.rows == [['a, "b" c', "1.00"]]

def test_unmatched_quote_runs_to_end_of_line():
    assert split_line('x,"abc, def') == ["x", "abc, def"]
    table = read_csv('a,b\nx,"open\ny,z\n')
    # The open quote never swallows the next line
    assert table.rows[1] == ["y", "z"]

def test_quote_after_leading_space_still_groups_field():
    assert split_line('2024-01-02, "Foo, Inc", 5.00') == ["2024-01-02", " Foo, Inc", " 5.00"]
    table = read_csv('Date,Description,Amount\n2024-01-02, "Foo, Inc", 5.00\n')
    assert table.rows == [["2024-01-02", " Foo, Inc", " 5.00"]]

def test_mid_field_quote_toggles_quoting():
    assert split_line('ab"c,d"e,f') == ["abc,de", "f"]
    assert split_line('a,"",b') == ["a", "", "b"]

def test_long_field_is_kept_whole():
    long_value = "x" * 200_000
    assert split_line(f'"{long_value}, y",2') == [f"{long_value}, y", "2"]

def test_rows_padded_or_truncated_to_header_width():
    table = read_csv("a,b,c\n1\n1,2,3,4,5\n1,2,3\n")
    assert table.width == 3
    assert table.rows == [["1", "", ""], ["1", "2", "3"], ["1", "2", "3"]]
    assert all(len(row) == len(table.headers) for row in table.rows)

def test_headers_trimmed_but_data_fields_kept():
    table = read_csv(" Date , Description \n2024-01-01,  Coffee shop \n")
    assert table.headers == ["Date", "Description"]
    assert table.rows == [["2024-01-01", "  Coffee shop "]]

def test_any_newline_convention_and_blank_lines_dropped():
    table = read_csv("a,b\r\n\r\n1,2\r3,4\n   \n5,6")
    assert table.rows == [["1", "2"], ["3", "4"], ["5", "6"]]

def test_bytes_with_bom_decoded_as_utf8():
    table = read_csv("\ufeffName,Amount\nCafé,3.50\n".encode("utf-8"))
    assert table.headers == ["Name", "Amount"]
    assert table.rows[0][0] == "Café"

def test_latin1_fallback():
    table = read_csv(b"Name,Amount\ncaf\xe9,3.50\n")
    assert table.rows[0] == ["café", "3.50"]

@pytest.mark.parametrize("content", ["", "\n\n   \n", b"\r\n \t \r\n"])
def test_empty_source_raises_empty(content):
    with pytest.raises(CSVEmptyError):
        read_csv(content)

def test_binary_content_is_unreadable():
    with pytest.raises(CSVUnreadableError):
        read_csv(b"PK\x03\x04\x00\x00binary")

def test_unsupported_source_type_is_unreadable():
    with pytest.raises(CSVReadError):
        read_csv(12345)

def test_read_csv_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes(b"Date,Amount\n01/02/2024,-3.00\n")
    table = read_csv_file(path)
    assert table.rows == [["01/02/2024", "-3.00"]]

def test_missing_file_is_unreadable(tmp_path):
    with pytest.raises(CSVUnreadableError):
        read_csv_file(tmp_path / "nope.csv")
