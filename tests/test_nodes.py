from run_node_smoke_tests import run_tests


def test_node_smoke():
    run_tests()
