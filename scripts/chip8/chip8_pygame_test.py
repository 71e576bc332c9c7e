import itertools
import logging
import os
import tempfile
import threading
import unittest

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
import numpy as np
import pygame

from chip8 import CYCLES_PER_SECOND, MAX_ROM_SIZE, Chip8, StackUnderflow
from chip8_pygame import (
    KEY_MAPPINGS, MAX_LAG, Buzzer, Scheduler, Screen,
    get_args, handle_events, load_rom, main, square_wave,
)

QUIET = logging.getLogger("chip8.test")
QUIET.addHandler(logging.NullHandler())
QUIET.propagate = False


def make_chip(*words):
    chip = Chip8(log=QUIET)
    chip.load(b"".join(w.to_bytes(2, "big") for w in words))
    return chip


class TestScheduler(unittest.TestCase):
    def test_rates_are_independent(self):
        chip = make_chip(0x1200)    # jump to itself forever
        chip.timers.dt = 3
        stop = threading.Event()
        frames = []

        def on_frame(chip):
            frames.append(chip.dt)
            if len(frames) == 4:
                stop.set()

        # every clock reading is half a second later: 5 cycles and 2 timer ticks each time
        scheduler = Scheduler(chip, cycles_per_second=10, timer_hz=4, max_lag=0.5,
                              clock=itertools.count(0, 0.5).__next__, sleep=lambda s: None)
        scheduler.run(stop, on_frame)
        self.assertEqual(scheduler.cycles, 10)
        self.assertEqual(scheduler.frames, 4)
        self.assertEqual(frames, [2, 1, 0, 0])

    def test_stall_is_not_replayed(self):
        chip = make_chip(0x1200)
        stop = threading.Event()

        def on_frame(chip):
            if scheduler.frames == 2:
                stop.set()

        # the second clock reading comes ten seconds after the first one
        scheduler = Scheduler(chip, cycles_per_second=10, timer_hz=4, max_lag=0.5,
                              clock=itertools.count(0, 10).__next__, sleep=lambda s: None)
        scheduler.run(stop, on_frame)
        self.assertEqual(scheduler.cycles, 5)
        self.assertEqual(scheduler.frames, 2)

    def test_default_lag_bounds_the_burst(self):
        chip = make_chip(0x1200)
        stop = threading.Event()
        scheduler = Scheduler(chip, clock=itertools.count(0, 10).__next__, sleep=lambda s: None)
        scheduler.run(stop, lambda chip: stop.set())
        self.assertLessEqual(scheduler.cycles, CYCLES_PER_SECOND * MAX_LAG + 1)
        self.assertEqual(scheduler.frames, 1)

    def test_stop_before_start(self):
        chip = make_chip(0x1200)
        stop = threading.Event()
        stop.set()
        scheduler = Scheduler(chip, clock=itertools.count(0, 1).__next__, sleep=lambda s: None)
        scheduler.run(stop)
        self.assertEqual(scheduler.cycles, 0)

    def test_errors_propagate(self):
        chip = make_chip(0x00EE)
        scheduler = Scheduler(chip, clock=itertools.count(0, 1).__next__, sleep=lambda s: None)
        with self.assertRaises(StackUnderflow):
            scheduler.run(threading.Event())

    def test_bad_rates(self):
        with self.assertRaises(ValueError):
            Scheduler(make_chip(), cycles_per_second=0)
        with self.assertRaises(ValueError):
            Scheduler(make_chip(), max_lag=0)


class TestSquareWave(unittest.TestCase):
    def test_mono(self):
        wave = square_wave(22050, 441)
        self.assertEqual(wave.dtype, np.int16)
        self.assertEqual(wave.shape, (50,))
        self.assertTrue((wave[:25] == 8000).all())
        self.assertTrue((wave[25:] == -8000).all())

    def test_stereo(self):
        wave = square_wave(22050, 441, channels=2)
        self.assertEqual(wave.shape, (50, 2))
        self.assertTrue((wave[:, 0] == wave[:, 1]).all())


class TestHost(unittest.TestCase):
    def setUp(self):
        pygame.display.init()

    def tearDown(self):
        pygame.quit()

    def test_render_only_dirty_frames(self):
        screen = Screen(s=2)
        chip = make_chip()
        chip.framebuffer.draw(3, 4, [0x80])
        self.assertTrue(screen.render(chip.framebuffer))
        self.assertFalse(chip.framebuffer.dirty)
        self.assertEqual(screen.surface.get_at((6, 8)), screen.foreground)
        self.assertEqual(screen.surface.get_at((0, 0)), screen.background)
        self.assertFalse(screen.render(chip.framebuffer))

    def test_keys_feed_the_keypad(self):
        chip = make_chip()
        stop = threading.Event()
        key = next(k for k, v in KEY_MAPPINGS.items() if v == 0xA)
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=key))
        handle_events(chip, stop)
        self.assertTrue(chip.keypad[0xA])
        pygame.event.post(pygame.event.Event(pygame.KEYUP, key=key))
        handle_events(chip, stop)
        self.assertFalse(chip.keypad[0xA])
        self.assertFalse(stop.is_set())
        pygame.event.post(pygame.event.Event(pygame.QUIT))
        handle_events(chip, stop)
        self.assertTrue(stop.is_set())

    def test_buzzer(self):
        buzzer = Buzzer()
        buzzer.update(True)
        self.assertEqual(buzzer.playing, buzzer.sound is not None)
        buzzer.stop()
        self.assertFalse(buzzer.playing)


class TestEntryPoint(unittest.TestCase):
    def test_args(self):
        args = get_args(["-f", "pong.ch8"])
        self.assertEqual(args.file, "pong.ch8")
        self.assertEqual(args.cps, 600)
        self.assertFalse(args.skip_unknown)
        args = get_args(["-f", "pong.ch8", "--cps", "700", "--skip-unknown", "--mute"])
        self.assertEqual(args.cps, 700)
        self.assertTrue(args.skip_unknown)
        self.assertTrue(args.mute)

    def test_load_rom(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "test.ch8")
            with open(path, "wb") as f:
                f.write(b"\x60\x0A\x61\x05")
            self.assertEqual(load_rom(path), b"\x60\x0A\x61\x05")

    def test_oversized_rom_stops_before_running(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "huge.ch8")
            with open(path, "wb") as f:
                f.write(bytes(MAX_ROM_SIZE + 1))
            with self.assertRaises(SystemExit) as ctx:
                main(["-f", path])
        self.assertIn("Program is", str(ctx.exception.code))

    def test_missing_rom(self):
        with self.assertRaises(SystemExit):
            main(["-f", os.path.join(tempfile.gettempdir(), "does-not-exist.ch8")])


if __name__ == "__main__":
    unittest.main()
