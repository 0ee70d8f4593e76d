"""
Pytest configuration and fixtures for animgraph tests.

GltfBuilder synthesizes small glTF assets in memory: arrays are packed into
one binary buffer, and nodes/meshes/animations reference them by accessor.
"""

import base64
import json
import math
import struct

import numpy as np
import pytest
import torch

from animgraph.core.constants import (
    COMPONENT_FLOAT,
    COMPONENT_UNSIGNED_BYTE,
    COMPONENT_UNSIGNED_INT,
    COMPONENT_UNSIGNED_SHORT,
)
from animgraph.data.gltf_loader import GltfDocument


_NUMPY_COMPONENTS = {
    COMPONENT_UNSIGNED_BYTE: np.uint8,
    COMPONENT_UNSIGNED_SHORT: np.uint16,
    COMPONENT_UNSIGNED_INT: np.uint32,
    COMPONENT_FLOAT: np.float32,
}

_ACCESSOR_TYPES = {1: 'SCALAR', 2: 'VEC2', 3: 'VEC3', 4: 'VEC4', 16: 'MAT4'}


class GltfBuilder:
    """Incrementally builds a glTF JSON tree plus one binary buffer."""

    def __init__(self):
        self.gltf = {
            'asset': {'version': '2.0'},
            'buffers': [],
            'bufferViews': [],
            'accessors': [],
            'nodes': [],
            'meshes': [],
            'scenes': [],
            'animations': [],
            'materials': [],
            'textures': [],
            'images': [],
        }
        self.blob = bytearray()

    # Raw data

    def add_view(self, data: bytes, byte_stride: int = None) -> int:
        while len(self.blob) % 4:
            self.blob.append(0)
        view = {'buffer': 0, 'byteOffset': len(self.blob), 'byteLength': len(data)}
        if byte_stride is not None:
            view['byteStride'] = byte_stride
        self.blob.extend(data)
        self.gltf['bufferViews'].append(view)
        return len(self.gltf['bufferViews']) - 1

    def add_accessor(self, values, component_type=COMPONENT_FLOAT, accessor_type=None, normalized=False) -> int:
        array = np.asarray(values, dtype=_NUMPY_COMPONENTS[component_type])
        if array.ndim == 1:
            array = array.reshape(-1, 1)
        if accessor_type is None:
            accessor_type = _ACCESSOR_TYPES[array.shape[1]]
        view = self.add_view(array.tobytes())
        accessor = {
            'bufferView': view,
            'componentType': component_type,
            'count': int(array.shape[0]),
            'type': accessor_type,
        }
        if normalized:
            accessor['normalized'] = True
        self.gltf['accessors'].append(accessor)
        return len(self.gltf['accessors']) - 1

    # Scene content

    def add_node(self, **fields) -> int:
        self.gltf['nodes'].append(dict(fields))
        return len(self.gltf['nodes']) - 1

    def add_child(self, parent: int, child: int) -> None:
        self.gltf['nodes'][parent].setdefault('children', []).append(child)

    def add_mesh(
        self,
        positions,
        indices=None,
        normals=None,
        texcoords=None,
        index_type=COMPONENT_UNSIGNED_SHORT,
        material=None
    ) -> int:
        return self.add_mesh_primitives([dict(
            positions=positions, indices=indices, normals=normals,
            texcoords=texcoords, index_type=index_type, material=material,
        )])

    def add_mesh_primitives(self, primitives) -> int:
        records = []
        for prim in primitives:
            attributes = {}
            if prim.get('positions') is not None:
                attributes['POSITION'] = self.add_accessor(prim['positions'])
            if prim.get('normals') is not None:
                attributes['NORMAL'] = self.add_accessor(prim['normals'])
            if prim.get('texcoords') is not None:
                attributes['TEXCOORD_0'] = self.add_accessor(prim['texcoords'])
            record = {'attributes': attributes}
            if prim.get('indices') is not None:
                record['indices'] = self.add_accessor(
                    prim['indices'], prim.get('index_type', COMPONENT_UNSIGNED_SHORT), 'SCALAR'
                )
            if prim.get('material') is not None:
                record['material'] = prim['material']
            records.append(record)
        self.gltf['meshes'].append({'primitives': records})
        return len(self.gltf['meshes']) - 1

    def add_scene(self, nodes, default=True) -> int:
        self.gltf['scenes'].append({'nodes': list(nodes)})
        index = len(self.gltf['scenes']) - 1
        if default:
            self.gltf['scene'] = index
        return index

    def add_animation(self, channels, name=None) -> int:
        """
        Args:
            channels: Sequence of dicts with node, path, times, values and
                optional interpolation
        """
        samplers = []
        records = []
        for channel in channels:
            sampler = {
                'input': self.add_accessor(channel['times'], accessor_type='SCALAR'),
                'output': self.add_accessor(channel['values']),
            }
            if channel.get('interpolation') is not None:
                sampler['interpolation'] = channel['interpolation']
            samplers.append(sampler)
            records.append({
                'sampler': len(samplers) - 1,
                'target': {'node': channel['node'], 'path': channel['path']},
            })
        animation = {'samplers': samplers, 'channels': records}
        if name is not None:
            animation['name'] = name
        self.gltf['animations'].append(animation)
        return len(self.gltf['animations']) - 1

    # Output

    def _json(self, uri=None):
        gltf = json.loads(json.dumps(self.gltf))
        buffer = {'byteLength': len(self.blob)}
        if uri is not None:
            buffer['uri'] = uri
        gltf['buffers'] = [buffer] if self.blob else []
        return gltf

    def document(self) -> GltfDocument:
        gltf = self._json()
        return GltfDocument(gltf, [bytes(self.blob)] if self.blob else [])

    def write_gltf(self, path, embed=False):
        if embed:
            uri = 'data:application/octet-stream;base64,' + base64.b64encode(bytes(self.blob)).decode('ascii')
        else:
            bin_path = path.with_suffix('.bin')
            bin_path.write_bytes(bytes(self.blob))
            uri = bin_path.name
        path.write_text(json.dumps(self._json(uri)))
        return path

    def write_glb(self, path):
        json_bytes = json.dumps(self._json()).encode('utf-8')
        json_bytes += b' ' * (-len(json_bytes) % 4)
        bin_bytes = bytes(self.blob) + b'\x00' * (-len(self.blob) % 4)

        chunks = struct.pack('<II', len(json_bytes), 0x4E4F534A) + json_bytes
        chunks += struct.pack('<II', len(bin_bytes), 0x004E4942) + bin_bytes
        header = struct.pack('<III', 0x46546C67, 2, 12 + len(chunks))
        path.write_bytes(header + chunks)
        return path


# =============================================================================
# Geometry data
# =============================================================================

TRIANGLE_POSITIONS = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
TRIANGLE_NORMALS = [[0.0, 0.0, 2.0], [0.0, 0.0, 1.0], [0.0, 0.0, 0.5]]
TRIANGLE_UVS = [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]
TRIANGLE_INDICES = [0, 1, 2]

QUAD_POSITIONS = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
QUAD_INDICES = [0, 1, 2, 0, 2, 3]


def axis_angle(axis, angle):
    """(w, x, y, z) rotation of `angle` radians about a unit axis."""
    axis = torch.as_tensor(axis, dtype=torch.float32)
    return torch.cat([torch.tensor([math.cos(angle / 2)]), axis * math.sin(angle / 2)])


@pytest.fixture
def cpu_device():
    """Force CPU device for consistent testing."""
    return torch.device('cpu')


@pytest.fixture
def gltf_builder():
    """Empty glTF builder."""
    return GltfBuilder()


@pytest.fixture
def chain_builder():
    """
    Three-node chain root -> child -> grandchild.

    Root translates by (1, 0, 0), child by (0, 1, 0), grandchild by (0, 0, 1).
    Root and grandchild carry a triangle mesh.
    """
    builder = GltfBuilder()
    mesh = builder.add_mesh(TRIANGLE_POSITIONS, TRIANGLE_INDICES, normals=TRIANGLE_NORMALS, texcoords=TRIANGLE_UVS)
    grandchild = builder.add_node(name='grandchild', translation=[0.0, 0.0, 1.0], mesh=mesh)
    child = builder.add_node(name='child', translation=[0.0, 1.0, 0.0], children=[grandchild])
    root = builder.add_node(name='root', translation=[1.0, 0.0, 0.0], children=[child], mesh=mesh)
    builder.add_scene([root])
    return builder


@pytest.fixture
def animated_builder():
    """
    Single quad node with translation keyframes (0, 0, 0) -> (4, 0, 0) over
    t = [0, 2] and a 90 degree rotation about z over t = [0, 1].
    """
    builder = GltfBuilder()
    mesh = builder.add_mesh(QUAD_POSITIONS, QUAD_INDICES)
    node = builder.add_node(name='spinner', mesh=mesh)
    builder.add_scene([node])

    half = float(np.sqrt(0.5))
    builder.add_animation([
        {
            'node': node,
            'path': 'translation',
            'times': [0.0, 2.0],
            'values': [[0.0, 0.0, 0.0], [4.0, 0.0, 0.0]],
        },
        {
            'node': node,
            'path': 'rotation',
            'times': [0.0, 1.0],
            'values': [[0.0, 0.0, 0.0, 1.0], [0.0, 0.0, half, half]],
        },
    ], name='move')
    return builder


@pytest.fixture
def chain_document(chain_builder):
    return chain_builder.document()


@pytest.fixture
def animated_document(animated_builder):
    return animated_builder.document()
