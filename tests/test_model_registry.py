import tempfile
import unittest
from pathlib import Path

import numpy as np

from cleftdetect.ai.model import ModelRegistry, ModelStatus, TFLiteModel
from cleftdetect.errors import ModelNotLoaded


class _FakeModel:
    def __init__(self, output_size: int | None = None, input_dtype=None, input_shape=None) -> None:
        if input_shape is not None:
            self.input_shape = tuple(input_shape)
        if output_size is not None:
            self.output_size = output_size
        if input_dtype is not None:
            self.input_dtype = np.dtype(input_dtype)

    def predict(self, tensor: np.ndarray) -> np.ndarray:  # pragma: no cover - unused here
        return np.array([[0.0, 0.0]])


class _FakeInterpreter:
    def __init__(self, output: np.ndarray, quantization=(0.0, 0)) -> None:
        self._output = output
        self._quantization = quantization
        self.allocated = False
        self.invocations = 0
        self.last_input: np.ndarray | None = None

    def allocate_tensors(self) -> None:
        self.allocated = True

    def get_input_details(self):
        return [{"index": 0, "dtype": np.uint8, "shape": np.array([1, 224, 224, 3])}]

    def get_output_details(self):
        return [
            {
                "index": 7,
                "shape": np.array(self._output.shape),
                "quantization": self._quantization,
            }
        ]

    def set_tensor(self, index: int, value: np.ndarray) -> None:
        self.last_input = value

    def invoke(self) -> None:
        self.invocations += 1

    def get_tensor(self, index: int) -> np.ndarray:
        return self._output


class ModelRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self.tmp.name)
        self.labels_path = self.tmp_path / "labels.txt"
        self.labels_path.write_text("0 Cleft\n1 Non-Cleft\n\n", encoding="utf-8")
        self.model_path = self.tmp_path / "model.tflite"

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _registry(self, loader, input_mode: str = "float", input_size: int = 224) -> ModelRegistry:
        return ModelRegistry(
            self.model_path,
            self.labels_path,
            input_mode=input_mode,
            input_size=input_size,
            loader=loader,
        )

    def test_require_before_load_raises(self) -> None:
        registry = self._registry(lambda path: _FakeModel())
        self.assertEqual(registry.status, ModelStatus.UNINITIALIZED)
        with self.assertRaises(ModelNotLoaded):
            registry.require()

    def test_load_reaches_ready_and_exposes_labels(self) -> None:
        model = _FakeModel(output_size=2, input_dtype=np.float32)
        registry = self._registry(lambda path: model)

        self.assertEqual(registry.load(), ModelStatus.READY)
        loaded = registry.require()
        self.assertIs(loaded.handle, model)
        self.assertEqual(loaded.labels.names, ("Cleft", "Non-Cleft"))
        self.assertEqual(registry.describe()["status"], "ready")

    def test_loader_failure_marks_load_failed(self) -> None:
        def broken(path: Path):
            raise OSError("model file corrupt")

        registry = self._registry(broken)
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)
        self.assertIn("corrupt", registry.last_error)
        with self.assertRaises(ModelNotLoaded):
            registry.require()

    def test_missing_label_file_fails_load(self) -> None:
        self.labels_path.unlink()
        registry = self._registry(lambda path: _FakeModel())
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)

    def test_label_count_must_match_model_outputs(self) -> None:
        registry = self._registry(lambda path: _FakeModel(output_size=3))
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)
        self.assertIn("outputs 3", registry.last_error)

    def test_input_mode_must_match_model_dtype(self) -> None:
        registry = self._registry(lambda path: _FakeModel(input_dtype=np.uint8))
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)

        integer_registry = self._registry(
            lambda path: _FakeModel(input_dtype=np.uint8), input_mode="integer"
        )
        self.assertEqual(integer_registry.load(), ModelStatus.READY)

    def test_input_size_must_match_model_input_shape(self) -> None:
        registry = self._registry(lambda path: _FakeModel(input_shape=(1, 256, 256, 3)))
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)
        self.assertIn("(1, 256, 256, 3)", registry.last_error)
        with self.assertRaises(ModelNotLoaded):
            registry.require()

        matching = self._registry(
            lambda path: _FakeModel(input_shape=(1, 256, 256, 3)), input_size=256
        )
        self.assertEqual(matching.load(), ModelStatus.READY)
        self.assertEqual(matching.describe()["input_size"], 256)

    def test_label_file_with_byte_order_mark_loads(self) -> None:
        self.labels_path.write_text("\ufeff0 Cleft\n1 Non-Cleft\n", encoding="utf-8")
        registry = self._registry(lambda path: _FakeModel(output_size=2))
        self.assertEqual(registry.load(), ModelStatus.READY)
        self.assertEqual(list(registry.labels.names), ["Cleft", "Non-Cleft"])

    def test_reload_after_failure(self) -> None:
        attempts: list[Path] = []

        def flaky(path: Path):
            attempts.append(path)
            if len(attempts) == 1:
                raise RuntimeError("transient")
            return _FakeModel()

        registry = self._registry(flaky)
        self.assertEqual(registry.load(), ModelStatus.LOAD_FAILED)
        self.assertEqual(registry.load(), ModelStatus.READY)
        self.assertIsNone(registry.last_error)
        # Loading again once ready is a no-op.
        self.assertEqual(registry.load(), ModelStatus.READY)
        self.assertEqual(len(attempts), 2)


class TFLiteModelTests(unittest.TestCase):
    def test_predict_casts_input_and_returns_single_output(self) -> None:
        interpreter = _FakeInterpreter(np.array([[0.2, 0.8]], dtype=np.float32))
        model = TFLiteModel(interpreter)

        self.assertTrue(interpreter.allocated)
        self.assertEqual(model.output_size, 2)
        self.assertEqual(model.input_dtype, np.dtype(np.uint8))
        self.assertEqual(model.input_shape, (1, 224, 224, 3))

        result = model.predict(np.zeros((1, 224, 224, 3), dtype=np.float32))
        self.assertEqual(interpreter.last_input.dtype, np.uint8)
        np.testing.assert_allclose(result, [[0.2, 0.8]])

    def test_predict_dequantizes_integer_outputs(self) -> None:
        interpreter = _FakeInterpreter(
            np.array([[138, 10]], dtype=np.uint8), quantization=(0.5, 10)
        )
        result = TFLiteModel(interpreter).predict(np.zeros((1, 224, 224, 3), dtype=np.uint8))
        np.testing.assert_allclose(result, [[64.0, 0.0]])


if __name__ == "__main__":
    unittest.main()
