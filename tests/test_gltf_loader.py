"""
Tests for glTF reading and the full load pipeline.
"""

import base64
import json
import logging

import numpy as np
import pytest
import torch

from animgraph.core.base import HostBackend
from animgraph.core.constants import COMPONENT_FLOAT, COMPONENT_UNSIGNED_BYTE, COMPONENT_UNSIGNED_SHORT
from animgraph.core.exceptions import AnimationLoadError, AssetReadError, GeometryError, SceneLoadError
from animgraph.data.gltf_loader import GltfDocument, load_model
from animgraph.scene.model import Model
from animgraph.utils.config import Config


# =============================================================================
# Accessor Tests
# =============================================================================

class TestReadAccessor:
    """Tests for accessor decoding."""

    def test_float_vec3(self, gltf_builder):
        index = gltf_builder.add_accessor([[1, 2, 3], [4, 5, 6]])
        values = gltf_builder.document().read_accessor(index)
        assert values.dtype == np.float32
        assert values.tolist() == [[1, 2, 3], [4, 5, 6]]

    def test_unsigned_short_scalar(self, gltf_builder):
        index = gltf_builder.add_accessor([0, 1, 65535], COMPONENT_UNSIGNED_SHORT, 'SCALAR')
        values = gltf_builder.document().read_accessor(index)
        assert values.shape == (3, 1)
        assert values.reshape(-1).tolist() == [0, 1, 65535]

    def test_normalized_bytes(self, gltf_builder):
        index = gltf_builder.add_accessor([[0, 255, 51, 255]], COMPONENT_UNSIGNED_BYTE, 'VEC4', normalized=True)
        values = gltf_builder.document().read_accessor(index)
        assert values.dtype == np.float32
        assert np.allclose(values, [[0.0, 1.0, 0.2, 1.0]])

    def test_byte_stride(self, gltf_builder):
        """Interleaved data is read using the buffer view stride."""
        interleaved = np.array([
            [1, 2, 3, 10, 20],
            [4, 5, 6, 40, 50],
        ], dtype=np.float32)
        view = gltf_builder.add_view(interleaved.tobytes(), byte_stride=20)
        gltf_builder.gltf['accessors'].append({
            'bufferView': view, 'byteOffset': 12, 'componentType': COMPONENT_FLOAT, 'count': 2, 'type': 'VEC2',
        })
        values = gltf_builder.document().read_accessor(0)
        assert values.tolist() == [[10, 20], [40, 50]]

    def test_no_buffer_view_reads_zeros(self, gltf_builder):
        gltf_builder.gltf['accessors'].append({'componentType': COMPONENT_FLOAT, 'count': 2, 'type': 'VEC3'})
        values = gltf_builder.document().read_accessor(0)
        assert values.shape == (2, 3)
        assert np.all(values == 0)

    def test_sparse_rejected(self, gltf_builder):
        index = gltf_builder.add_accessor([[1, 2, 3]])
        gltf_builder.gltf['accessors'][index]['sparse'] = {'count': 1}
        with pytest.raises(AssetReadError, match="sparse"):
            gltf_builder.document().read_accessor(index)

    def test_read_past_end(self, gltf_builder):
        index = gltf_builder.add_accessor([[1, 2, 3]])
        gltf_builder.gltf['accessors'][index]['count'] = 10
        with pytest.raises(AssetReadError, match="past the end"):
            gltf_builder.document().read_accessor(index)

    def test_missing_accessor(self, gltf_builder):
        with pytest.raises(AssetReadError, match="does not exist"):
            gltf_builder.document().read_accessor(3)

    def test_unknown_type(self, gltf_builder):
        index = gltf_builder.add_accessor([[1, 2, 3]])
        gltf_builder.gltf['accessors'][index]['type'] = 'VEC5'
        with pytest.raises(AssetReadError, match="unknown type"):
            gltf_builder.document().read_accessor(index)


# =============================================================================
# File Format Tests
# =============================================================================

class TestFileFormats:
    """Tests for reading .gltf and .glb containers."""

    def test_gltf_external_buffer(self, chain_builder, tmp_path):
        path = chain_builder.write_gltf(tmp_path / 'chain.gltf')
        document = GltfDocument.from_file(path)
        assert len(document.nodes) == 3
        assert document.buffers[0] == bytes(chain_builder.blob)

    def test_gltf_data_uri(self, chain_builder, tmp_path):
        path = chain_builder.write_gltf(tmp_path / 'chain.gltf', embed=True)
        document = GltfDocument.from_file(path)
        assert document.buffers[0] == bytes(chain_builder.blob)

    def test_glb(self, chain_builder, tmp_path):
        path = chain_builder.write_glb(tmp_path / 'chain.glb')
        document = GltfDocument.from_file(path)
        assert len(document.nodes) == 3
        assert document.buffers[0][:len(chain_builder.blob)] == bytes(chain_builder.blob)

    def test_gltf_and_glb_agree(self, chain_builder, tmp_path):
        """The same asset yields identical buffers from both containers."""
        from_gltf = load_model(chain_builder.write_gltf(tmp_path / 'a.gltf'))
        from_glb = load_model(chain_builder.write_glb(tmp_path / 'b.glb'))

        assert np.array_equal(from_gltf.vertices, from_glb.vertices)
        assert np.array_equal(from_gltf.indices, from_glb.indices)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AssetReadError, match="not found"):
            GltfDocument.from_file(tmp_path / 'missing.gltf')

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'broken.gltf'
        path.write_text('{not json')
        with pytest.raises(AssetReadError, match="Invalid glTF JSON"):
            GltfDocument.from_file(path)

    def test_missing_bin(self, chain_builder, tmp_path):
        path = chain_builder.write_gltf(tmp_path / 'chain.gltf')
        path.with_suffix('.bin').unlink()
        with pytest.raises(AssetReadError, match="not found"):
            GltfDocument.from_file(path)

    def test_short_buffer(self, chain_builder, tmp_path):
        gltf = chain_builder._json('data:application/octet-stream;base64,' + base64.b64encode(b'1234').decode())
        path = tmp_path / 'short.gltf'
        path.write_text(json.dumps(gltf))
        with pytest.raises(AssetReadError, match="expected"):
            GltfDocument.from_file(path)

    def test_bad_glb_magic(self, tmp_path):
        path = tmp_path / 'bad.glb'
        path.write_bytes(b'NOPE' + b'\x00' * 20)
        with pytest.raises(AssetReadError, match="magic"):
            GltfDocument.from_file(path)

    def test_non_base64_data_uri(self, gltf_builder):
        gltf = {'buffers': [{'uri': 'data:text/plain,hello', 'byteLength': 5}]}
        with pytest.raises(AssetReadError, match="base64"):
            GltfDocument.from_json(gltf)


# =============================================================================
# Pipeline Tests
# =============================================================================

class TestLoadModel:
    """Tests for the full load pipeline."""

    def test_load_document(self, chain_document):
        model = load_model(chain_document)
        assert isinstance(model, Model)
        assert len(model.graph) == 3
        assert model.vertices.shape == (6,)
        assert model.indices.tolist() == [0, 1, 2, 3, 4, 5]

    def test_load_with_backend(self, animated_document):
        backend = HostBackend()
        model = load_model(animated_document, backend=backend)

        assert backend.upload_count == 1
        assert model.backend is backend
        assert len(backend.node_buffers) == 1

    def test_load_from_path_logs(self, chain_builder, tmp_path, caplog):
        path = chain_builder.write_gltf(tmp_path / 'chain.gltf')
        with caplog.at_level(logging.INFO, logger='animgraph'):
            load_model(path)
        assert "Built scene: 3 nodes, 2 renderable" in caplog.text

    def test_config_scene_and_animation(self, animated_document):
        model = load_model(animated_document, Config(active_animation=None))
        assert model.active_animation is None

    def test_config_vertex_color(self, chain_document):
        model = load_model(chain_document, Config(vertex_color=[0.5, 0.5, 0.5, 1.0]))
        assert np.allclose(model.vertices['color'], [0.5, 0.5, 0.5, 1.0])

    def test_initial_world_matrices_written(self, chain_document):
        backend = HostBackend()
        model = load_model(chain_document, backend=backend)
        grandchild = model.graph.node(0)
        matrix = backend.read_matrix(grandchild.binding)
        assert np.allclose(matrix[:3, 3], [1.0, 1.0, 1.0])

    def test_unresolved_target_fails_without_upload(self, animated_builder, caplog):
        """A bad channel target fails the load before anything is uploaded."""
        animated_builder.gltf['animations'][0]['channels'][0]['target']['node'] = 99
        backend = HostBackend()

        with caplog.at_level(logging.ERROR):
            with pytest.raises(AnimationLoadError):
                load_model(animated_builder.document(), backend=backend)

        assert backend.upload_count == 0
        assert backend.node_buffers == {}
        assert "Failed to load" in caplog.text

    def test_geometry_error_is_scene_load_error(self, gltf_builder):
        mesh = gltf_builder.add_mesh_primitives([dict(normals=[[0, 0, 1]])])
        gltf_builder.add_scene([gltf_builder.add_node(mesh=mesh)])
        with pytest.raises(SceneLoadError) as excinfo:
            load_model(gltf_builder.document())
        assert isinstance(excinfo.value, GeometryError)

    def test_vec4_position_fails(self, gltf_builder, caplog):
        """A POSITION accessor that is not VEC3 aborts the load."""
        positions = gltf_builder.add_accessor([[0, 0, 0, 1], [1, 1, 0, 1], [0, 1, 0, 1]])
        gltf_builder.gltf['meshes'].append({'primitives': [{'attributes': {'POSITION': positions}}]})
        gltf_builder.add_scene([gltf_builder.add_node(mesh=0)])

        with caplog.at_level(logging.ERROR):
            with pytest.raises(GeometryError, match="POSITION"):
                load_model(gltf_builder.document())
        assert "Failed to load" in caplog.text

    def test_vec2_position_is_scene_load_error(self, gltf_builder):
        positions = gltf_builder.add_accessor([[0, 0], [1, 0]])
        gltf_builder.gltf['meshes'].append({'primitives': [{'attributes': {'POSITION': positions}}]})
        gltf_builder.add_scene([gltf_builder.add_node(mesh=0)])

        with pytest.raises(SceneLoadError):
            load_model(gltf_builder.document())

    def test_unsupported_index_width_fails(self, gltf_builder):
        mesh = gltf_builder.add_mesh([[0, 0, 0], [1, 0, 0], [0, 1, 0]], [0.0, 1.0, 2.0], index_type=COMPONENT_FLOAT)
        gltf_builder.add_scene([gltf_builder.add_node(mesh=mesh)])
        with pytest.raises(GeometryError, match="not supported"):
            load_model(gltf_builder.document())

    def test_empty_document(self):
        model = load_model(GltfDocument({'asset': {'version': '2.0'}}))
        assert len(model.graph) == 0
        assert model.vertices.shape == (0,)
        assert model.animations == []

    def test_device_from_config(self, chain_document, cpu_device):
        model = load_model(chain_document, Config(device='cpu'))
        assert model.graph.node(2).translation.device == cpu_device
        assert torch.equal(model.graph.node(2).translation, torch.tensor([1.0, 0.0, 0.0]))
