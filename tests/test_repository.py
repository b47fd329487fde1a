"""
Test: Supabase query building in the repository, against a recording client.
"""
from types import SimpleNamespace

from app.core.repository import Repository


class RecordingQuery:
    def __init__(self, calls, rows):
        self.calls = calls
        self.rows = rows

    def __getattr__(self, name):
        def call(*args, **kwargs):
            self.calls.append((name, args))
            return self
        return call

    def execute(self):
        return SimpleNamespace(data=self.rows, count=len(self.rows))


class RecordingClient:
    def __init__(self, lecturers=()):
        self.calls = []
        self.lecturers = list(lecturers)

    def table(self, name):
        self.calls.append(("table", (name,)))
        return RecordingQuery(self.calls, self.lecturers if name == "users" else [])

    def filters(self, name):
        return [args[0] for call, args in self.calls if call == name]


class TestCourseSearchFilter:
    def test_comma_and_parentheses_stay_inside_one_value(self):
        client = RecordingClient()
        Repository(client).list_courses(search="graphs, trees (intro)")
        assert client.filters("or_") == [
            'title.ilike."%graphs, trees (intro)%",syllabus.ilike."%graphs, trees (intro)%"'
        ]

    def test_quotes_and_backslashes_are_escaped(self):
        client = RecordingClient()
        Repository(client).list_courses(search='say "hi" \\')
        assert client.filters("or_") == [
            'title.ilike."%say \\"hi\\" \\\\%",syllabus.ilike."%say \\"hi\\" \\\\%"'
        ]

    def test_injected_condition_is_not_parsed(self):
        client = RecordingClient()
        Repository(client).list_courses(search="x%,lecturer_id.eq.abc")
        (or_filter,) = client.filters("or_")
        assert or_filter.count('"') == 4
        assert or_filter.startswith('title.ilike."%x%,lecturer_id.eq.abc%"')

    def test_matching_lecturers_widen_the_search(self):
        client = RecordingClient(lecturers=[{"id": "u-1"}, {"id": "u-2"}])
        Repository(client).list_courses(search="turing")
        assert client.filters("ilike") == ["email"]
        assert client.filters("or_") == [
            'title.ilike."%turing%",syllabus.ilike."%turing%",lecturer_id.in.("u-1","u-2")'
        ]

    def test_no_search_no_filter(self):
        client = RecordingClient()
        Repository(client).list_courses()
        assert client.filters("or_") == []
