"""
System tests for the Handwritten Digit Recognizer
Tests the end-to-end pipeline, the drawing session, the CLI and the debug plots
"""

import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest import mock

import matplotlib
matplotlib.use('Agg')
import numpy as np
from PIL import Image

# Add src and tests directories to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.append(os.path.dirname(__file__))

from digit_recognizer import cli
from digit_recognizer.parameters import ModelParameters, ModelParameterStore
from digit_recognizer.pipeline import DigitRecognizer, Prediction
from digit_recognizer.sampling import BoundingBox, PixelBuffer
from digit_recognizer.session import (
    DrawingSession,
    GestureEnd,
    GestureMove,
    GestureStart,
    SessionState,
    SurfaceResized,
)
from digit_recognizer.visualize import plot_normalization_steps
from helpers import blank_rgba, disk_rgba, intensity_centroid, make_parameter_arrays, write_json_blob


class TestRecognitionScenarios(unittest.TestCase):
    """End-to-end behaviour on reference drawings"""

    def setUp(self):
        self.params = ModelParameters.from_arrays(make_parameter_arrays(h1=32, h2=16, seed=11))
        self.recognizer = DigitRecognizer(self.params)

    def test_blank_canvas_gives_no_prediction(self):
        buffer = PixelBuffer(blank_rgba(280, 280))
        digit = self.recognizer.preprocess(buffer)
        self.assertIs(digit.box, BoundingBox.EMPTY)
        self.assertFalse(digit.image.any())

        with mock.patch.object(self.recognizer.engine, 'forward_pass') as forward:
            self.assertIsNone(self.recognizer.predict(buffer))
            forward.assert_not_called()

    def test_centred_disk(self):
        buffer = PixelBuffer(disk_rgba(radius=12))
        digit = self.recognizer.preprocess(buffer)

        box = digit.box
        self.assertTrue(24 <= box.width <= 26 and 24 <= box.height <= 26)
        self.assertLessEqual(abs((box.min_x + box.max_x) / 2 - 140), 1)
        self.assertLessEqual(abs((box.min_y + box.max_y) / 2 - 140), 1)

        cx, cy = intensity_centroid(digit.image)
        self.assertLess(abs(cx - 14), 1.0)
        self.assertLess(abs(cy - 14), 1.0)

        prediction = self.recognizer.predict(buffer)
        self.assertIsInstance(prediction, Prediction)
        self.assertEqual(prediction.probabilities.shape, (10,))
        self.assertAlmostEqual(float(prediction.probabilities.sum()), 1.0, delta=1e-6)
        self.assertTrue(0 <= prediction.digit <= 9)
        self.assertEqual(prediction.confidence, float(prediction.probabilities.max()))

    def test_fully_black_canvas(self):
        pixels = blank_rgba(280, 280)
        pixels[:, :, :3] = 0
        digit = self.recognizer.preprocess(PixelBuffer(pixels))

        self.assertEqual(digit.box, BoundingBox(0, 0, 279, 279))
        self.assertEqual(digit.trace.crop, (0, 0, 280, 280))
        self.assertEqual(digit.trace.scaled_size, (24, 24))
        self.assertEqual(digit.trace.offset, (2, 2))
        np.testing.assert_allclose(digit.image[2:26, 2:26], 1.0, atol=1e-5)
        self.assertAlmostEqual(float(digit.image.sum()), 24 * 24, delta=1e-2)

        prediction = self.recognizer.predict(PixelBuffer(pixels))
        self.assertAlmostEqual(float(prediction.probabilities.sum()), 1.0, delta=1e-6)

    def test_repeated_calls_are_identical(self):
        buffer = PixelBuffer(disk_rgba(radius=40, center=(100, 170)))
        first = self.recognizer.predict(buffer).probabilities
        for _ in range(3):
            np.testing.assert_allclose(self.recognizer.predict(buffer).probabilities, first, rtol=0, atol=1e-15)

    def test_predict_many_keeps_order(self):
        buffers = [
            PixelBuffer(disk_rgba(radius=r, center=(40 + 4 * r, 140))) for r in (8, 15, 30, 45)
        ]
        buffers.insert(2, PixelBuffer(blank_rgba()))
        expected = [self.recognizer.predict(b) for b in buffers]
        results = self.recognizer.predict_many(buffers, max_workers=4)

        self.assertEqual(len(results), len(buffers))
        self.assertIsNone(results[2])
        for got, want in zip(results, expected):
            if want is None:
                self.assertIsNone(got)
            else:
                np.testing.assert_allclose(got.probabilities, want.probabilities, atol=1e-15)

    def test_predict_many_empty(self):
        self.assertEqual(self.recognizer.predict_many([]), [])

    def test_uses_shared_store(self):
        store = ModelParameterStore()
        store.set_parameters(self.params)
        recognizer = DigitRecognizer(store=store)
        buffer = PixelBuffer(disk_rgba())
        np.testing.assert_allclose(
            recognizer.predict(buffer).probabilities,
            self.recognizer.predict(buffer).probabilities,
        )


class TestPrediction(unittest.TestCase):
    """Test ranking of the output probabilities"""

    def setUp(self):
        probs = np.array([0.05, 0.1, 0.02, 0.5, 0.03, 0.1, 0.05, 0.05, 0.08, 0.02])
        self.prediction = Prediction(probabilities=probs, hidden1=np.zeros(4), hidden2=np.zeros(3))

    def test_digit_and_confidence(self):
        self.assertEqual(self.prediction.digit, 3)
        self.assertAlmostEqual(self.prediction.confidence, 0.5)

    def test_ranked(self):
        ranked = self.prediction.ranked()
        self.assertEqual(len(ranked), 10)
        self.assertEqual(ranked[0], (3, 0.5))
        values = [p for _, p in ranked]
        self.assertEqual(values, sorted(values, reverse=True))
        self.assertEqual(sorted(d for d, _ in ranked), list(range(10)))

    def test_percentages(self):
        percentages = self.prediction.percentages()
        self.assertEqual(percentages[3], 50)
        self.assertEqual(percentages[8], 8)

    def test_percentages_round_halves_up(self):
        probs = np.array([0.125, 0.375, 0.5, 0, 0, 0, 0, 0, 0, 0])
        prediction = Prediction(probabilities=probs, hidden1=np.zeros(4), hidden2=np.zeros(3))
        percentages = prediction.percentages()
        self.assertEqual(percentages[0], 13)
        self.assertEqual(percentages[1], 38)
        self.assertEqual(percentages[2], 50)
        self.assertEqual(percentages[3], 0)


class TestDrawingSession(unittest.TestCase):
    """Test the gesture state machine and canvas"""

    def test_initial_canvas_is_blank(self):
        session = DrawingSession()
        self.assertEqual(session.state, SessionState.IDLE)
        self.assertEqual(session.size, (280, 280))
        self.assertFalse((session.snapshot().pixels[:, :, :3] < 255).any())

    def test_gesture_produces_stroke(self):
        session = DrawingSession()
        session.handle(GestureStart(50, 60))
        self.assertEqual(session.state, SessionState.DRAWING)
        session.handle(GestureMove(120, 60))
        session.handle(GestureMove(200, 200))
        buffer = session.handle(GestureEnd())

        self.assertEqual(session.state, SessionState.IDLE)
        self.assertIsInstance(buffer, PixelBuffer)
        pixels = buffer.pixels
        self.assertTrue((pixels[60, 50:120, :3] == 0).all())
        self.assertTrue((pixels[60 - 10, 85, :3] == 0).all())
        self.assertTrue((pixels[5, 5, :3] == 255).all())

    def test_moves_while_idle_are_ignored(self):
        session = DrawingSession()
        session.handle(GestureMove(10, 10))
        session.handle(GestureMove(100, 100))
        self.assertIsNone(session.handle(GestureEnd()))
        self.assertFalse((session.snapshot().pixels[:, :, :3] < 255).any())

    def test_listener_receives_buffer_on_gesture_end(self):
        received = []
        session = DrawingSession(on_gesture_end=lambda buf: received.append(buf) or 'done')
        session.handle(GestureStart(100, 100))
        session.handle(GestureMove(180, 100))
        self.assertEqual(received, [])
        self.assertEqual(session.handle(GestureEnd()), 'done')
        self.assertEqual(len(received), 1)
        self.assertEqual((received[0].width, received[0].height), (280, 280))

    def test_device_pixel_ratio(self):
        session = DrawingSession(280, 280, device_pixel_ratio=2.0)
        self.assertEqual(session.size, (560, 560))
        session.start(10, 10)
        session.move(100, 10)
        session.end()
        pixels = session.snapshot().pixels
        self.assertTrue((pixels[20, 30:200, :3] == 0).all())

    def test_resize_clears_canvas_and_gesture(self):
        session = DrawingSession()
        session.handle(GestureStart(50, 50))
        session.handle(GestureMove(150, 150))
        session.handle(SurfaceResized(200, 100))
        self.assertEqual(session.state, SessionState.IDLE)
        self.assertEqual(session.size, (200, 100))
        self.assertFalse((session.snapshot().pixels[:, :, :3] < 255).any())
        self.assertIsNone(session.handle(GestureEnd()))

    def test_clear(self):
        session = DrawingSession()
        session.start(50, 50)
        session.move(150, 150)
        session.end()
        session.clear()
        self.assertFalse((session.snapshot().pixels[:, :, :3] < 255).any())

    def test_unknown_event(self):
        with self.assertRaises(TypeError):
            DrawingSession().handle('tap')

    def test_drawn_digit_is_recognised(self):
        params = ModelParameters.from_arrays(make_parameter_arrays(seed=12))
        recognizer = DigitRecognizer(params)
        session = DrawingSession(on_gesture_end=recognizer.predict)
        session.handle(GestureStart(140, 40))
        session.handle(GestureMove(140, 240))
        prediction = session.handle(GestureEnd())
        self.assertIsInstance(prediction, Prediction)
        self.assertAlmostEqual(float(prediction.probabilities.sum()), 1.0, delta=1e-6)


class TestCommandLine(unittest.TestCase):
    """Test the digit-recognizer CLI"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.params_path = write_json_blob(self.tmp.name, make_parameter_arrays(), version='test-1')
        self.image_path = os.path.join(self.tmp.name, 'digit.png')
        Image.fromarray(disk_rgba(radius=20)).save(self.image_path)
        self.blank_path = os.path.join(self.tmp.name, 'blank.png')
        Image.fromarray(blank_rgba()).save(self.blank_path)
        patcher = mock.patch.object(cli, 'setup_logging')
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def _run(self, argv):
        out = io.StringIO()
        with mock.patch.object(cli, 'get_store', return_value=ModelParameterStore()):
            with redirect_stdout(out):
                code = cli.main(argv)
        return code, out.getvalue()

    def test_check_model(self):
        code, output = self._run(['check-model', '--parameters', self.params_path])
        self.assertEqual(code, 0)
        self.assertIn('784 -> 16 -> 12 -> 10', output)
        self.assertIn('test-1', output)

    def test_predict(self):
        code, output = self._run(['predict', self.image_path, '--parameters', self.params_path, '--top', '3'])
        self.assertEqual(code, 0)
        self.assertIn('Predicted digit:', output)
        self.assertEqual(output.count('%'), 3)

    def test_predict_top_out_of_range(self):
        for top in ('0', '-1', '11', 'x'):
            with mock.patch('sys.stderr', new_callable=io.StringIO) as err:
                with self.assertRaises(SystemExit) as cm:
                    self._run(['predict', self.image_path, '--parameters', self.params_path, '--top', top])
            self.assertEqual(cm.exception.code, 2)
            self.assertIn('--top', err.getvalue())

    def test_predict_top_full_ranking(self):
        code, output = self._run(['predict', self.image_path, '--parameters', self.params_path, '--top', '10'])
        self.assertEqual(code, 0)
        self.assertEqual(output.count('%'), 10)

    def test_predict_blank(self):
        code, output = self._run(['predict', self.blank_path, '--parameters', self.params_path])
        self.assertEqual(code, 1)
        self.assertIn('No digit drawn', output)

    def test_invalid_model(self):
        with mock.patch('sys.stderr', new_callable=io.StringIO):
            code, _ = self._run(['predict', self.image_path, '--parameters', os.path.join(self.tmp.name, 'missing.json')])
        self.assertEqual(code, 2)

    def test_show_steps(self):
        out_png = os.path.join(self.tmp.name, 'steps.png')
        code, output = self._run(['show-steps', self.image_path, '--output', out_png])
        self.assertEqual(code, 0)
        self.assertTrue(os.path.isfile(out_png))


class TestVisualization(unittest.TestCase):
    """Test normalisation step plots"""

    def test_plot_to_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'steps.png')
            plot_normalization_steps(PixelBuffer(disk_rgba(radius=25, center=(90, 120))), path)
            self.assertGreater(os.path.getsize(path), 0)

    def test_plot_blank(self):
        import matplotlib.pyplot as plt
        fig = plot_normalization_steps(PixelBuffer(blank_rgba(50, 50)))
        self.assertEqual(len(fig.axes), 4)
        plt.close(fig)


if __name__ == '__main__':
    unittest.main()
