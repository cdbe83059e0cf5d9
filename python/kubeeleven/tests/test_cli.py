"""Tests for the kube_eleven command-line entrypoint."""

import os

from factories import make_cluster, make_lb, make_node, make_pool
from kubeeleven.cli.kube_eleven import main
from kubeeleven.models.cluster import ClusterDescriptor, NodeType

SUCCESS_SCRIPT = """\
for f in *-kubeconfig; do echo "kind: Config" > "$f"; done
"""


def _write_descriptor(tmp_path, lb: bool = False) -> str:
    descriptor = ClusterDescriptor(
        cluster=make_cluster([make_pool("control", [make_node("control-1", "1.2.3.4", NodeType.MASTER)])]),
        lb_clusters=[make_lb("c1")] if lb else [],
    )
    path = tmp_path / "cluster.yaml"
    path.write_text(descriptor.to_yaml())
    return str(path)


class TestMain:
    """Tests for main()."""

    def test_build_writes_updated_descriptor(self, tmp_path, fake_kubeone, capsys) -> None:
        descriptor_path = _write_descriptor(tmp_path)
        output_path = str(tmp_path / "out.yaml")

        code = main(
            [
                "--descriptor", descriptor_path,
                "--output", output_path,
                "--base-dir", str(tmp_path / "server"),
                "--kubeone-binary", fake_kubeone(SUCCESS_SCRIPT),
            ]
        )

        assert code == 0
        with open(output_path) as f:
            updated = ClusterDescriptor.from_yaml(f.read())
        assert updated.cluster.kubeconfig == "kind: Config\n"
        assert updated.cluster.cluster_info.node_pools[0].nodes[0].node_type == NodeType.API_ENDPOINT
        assert "API endpoint = '1.2.3.4'" in capsys.readouterr().out

    def test_overwrites_input_without_output(self, tmp_path, fake_kubeone) -> None:
        descriptor_path = _write_descriptor(tmp_path, lb=True)

        code = main(
            [
                "--descriptor", descriptor_path,
                "--base-dir", str(tmp_path / "server"),
                "--kubeone-binary", fake_kubeone(SUCCESS_SCRIPT),
            ]
        )

        assert code == 0
        with open(descriptor_path) as f:
            assert ClusterDescriptor.from_yaml(f.read()).cluster.kubeconfig == "kind: Config\n"

    def test_failure_returns_one_and_keeps_descriptor(self, tmp_path, fake_kubeone, capsys) -> None:
        descriptor_path = _write_descriptor(tmp_path)
        with open(descriptor_path) as f:
            original = f.read()

        code = main(
            [
                "--descriptor", descriptor_path,
                "--base-dir", str(tmp_path / "server"),
                "--kubeone-binary", fake_kubeone("exit 4\n"),
                "--cleanup-on-failure",
            ]
        )

        assert code == 1
        assert "ERROR:" in capsys.readouterr().err
        with open(descriptor_path) as f:
            assert f.read() == original
        assert not os.path.exists(tmp_path / "server" / "clusters" / "c1-h1")

    def test_missing_descriptor(self, tmp_path, capsys) -> None:
        code = main(["--descriptor", str(tmp_path / "missing.yaml")])

        assert code == 1
        assert "ERROR:" in capsys.readouterr().err
