from tokenvm.version import VERSION, Semantic


def test_version_string():
    assert str(Semantic(0, 0, 1)) == "v0.0.1"
    assert str(VERSION) == str(Semantic(0, 0, 1))


def test_custom_version_string():
    assert str(Semantic(1, 2, 3)) == "v1.2.3"


def test_versions_are_ordered():
    assert Semantic(0, 0, 1) < Semantic(0, 1, 0) < Semantic(1, 0, 0)
    assert Semantic(0, 0, 1) == VERSION