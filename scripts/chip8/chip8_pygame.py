import argparse
import logging
import os
import sys
import threading
import time

import numpy as np
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
)

from chip8 import (
    CYCLES_PER_SECOND,
    RAISE,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    SKIP,
    TIMER_HZ,
    Chip8,
    Chip8Error,
)


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0,
    K_1: 0x1,
    K_2: 0x2,
    K_3: 0x3,
    K_4: 0x4,
    K_5: 0x5,
    K_6: 0x6,
    K_7: 0x7,
    K_8: 0x8,
    K_9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False
SCALE = 15
BLUE = pygame.Color(80,69,155,255)
LIGHT_BLUE = pygame.Color(136,126,203,255)
SAMPLE_RATE = 22050
TONE_HZ = 440
IDLE_SLEEP = 0.001
MAX_LAG = 0.1      # seconds of emulated time caught up after a stall

log = logging.getLogger("chip8.host")


# ******************** UTILITIES SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("--cps", type=int, default=CYCLES_PER_SECOND,
                        help=f"instructions executed per second (default {CYCLES_PER_SECOND})")
    parser.add_argument("--scale", type=int, default=SCALE, help=f"size of a CHIP-8 pixel on screen (default {SCALE})")
    parser.add_argument("--skip-unknown", action="store_true",
                        help="log and skip instructions that don't decode instead of stopping")
    parser.add_argument("--mute", action="store_true", help="disable the buzzer")
    parser.add_argument("--debug", action="store_true", default=DEBUG, help="trace every executed instruction")
    return parser.parse_args(argv)

def load_rom(path):
    """read a ROM image, its size is checked when it gets loaded in memory"""
    with open(path, mode='rb') as f:
        rom = f.read()
    log.info("Read %d bytes from %s", len(rom), path)
    return rom


# ******************** I/O SECTION
class Screen:
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLUE, fg_color=LIGHT_BLUE):
        self.w, self.h, self.scale = w, h, s
        self.background = bg_color
        self.foreground = fg_color
        self.surface = pygame.display.set_mode(
            (w * self.scale, h * self.scale),
        )
        self.surface.fill(self.background)

    def write_pixel(self, x, y, color):
        """paint a pixel, the change won't be visible until the next refresh"""
        pygame.draw.rect(
            self.surface,
            self.background if color==0 else self.foreground,
            (x * self.scale, y * self.scale, self.scale, self.scale)
        )

    @staticmethod
    def refresh():
        pygame.display.flip()

    def render(self, framebuffer):
        """redraw the framebuffer if it changed since the last frame, return True if it did"""
        if not framebuffer.dirty:
            return False
        self.surface.fill(self.background)
        for y, row in enumerate(framebuffer.rows()):
            for x, pixel in enumerate(row):
                if pixel:
                    self.write_pixel(x, y, pixel)
        self.refresh()
        framebuffer.ack()
        return True


def square_wave(rate, tone_hz=TONE_HZ, channels=1, amplitude=8000):
    """one period of a 16 bit square wave, shaped for pygame.sndarray"""
    period = max(2, rate // tone_hz)
    wave = np.where(np.arange(period) < period // 2, amplitude, -amplitude).astype(np.int16)
    if channels > 1:
        wave = np.ascontiguousarray(np.repeat(wave[:, np.newaxis], channels, axis=1))
    return wave


class Buzzer:
    """square wave played as long as the sound timer is active"""

    def __init__(self, tone_hz=TONE_HZ, volume=0.2):
        self.sound = None
        self.playing = False
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(SAMPLE_RATE, -16, 1, 512)
        except pygame.error as err:
            log.warning("No audio device, the buzzer is disabled: %s", err)
            return
        rate, _, channels = pygame.mixer.get_init()
        self.sound = pygame.sndarray.make_sound(square_wave(rate, tone_hz, channels))
        self.sound.set_volume(volume)

    def update(self, active):
        if self.sound is None or active == self.playing:
            return
        if active:
            self.sound.play(loops=-1)
        else:
            self.sound.stop()
        self.playing = active

    def stop(self):
        self.update(False)


def handle_events(chip, stop):
    """feed the keypad latch from the pygame event queue, set stop on quit"""
    for event in pygame.event.get():
        if event.type == pygame.QUIT:
            stop.set()
        elif event.type in (pygame.KEYDOWN, pygame.KEYUP):
            if event.key == pygame.K_ESCAPE:
                stop.set()
            elif event.key in KEY_MAPPINGS:
                chip.keypad[KEY_MAPPINGS[event.key]] = event.type == pygame.KEYDOWN


# ******************** SCHEDULING SECTION
class Scheduler:
    """
    drive a Chip8 in real time: step() at cycles_per_second and tick_timers() at timer_hz,
    two accumulators keep the two rates independent from each other,
    a host stall longer than max_lag seconds is dropped instead of replayed
    """

    def __init__(self, chip, cycles_per_second=CYCLES_PER_SECOND, timer_hz=TIMER_HZ,
                 clock=time.perf_counter, sleep=time.sleep, max_lag=MAX_LAG):
        if cycles_per_second <= 0 or timer_hz <= 0 or max_lag <= 0:
            raise ValueError("rates and max_lag must be positive")
        self.chip = chip
        self.cycles_per_second = cycles_per_second
        self.timer_hz = timer_hz
        self.max_lag = max_lag
        self.clock = clock
        self.sleep = sleep
        self.cycles = 0
        self.frames = 0

    def run(self, stop, on_frame=None):
        """run until stop (a threading.Event) is set, on_frame(chip) is called after every timer tick"""
        cycle_budget = timer_budget = 0.0
        last = self.clock()
        while not stop.is_set():
            now = self.clock()
            elapsed, last = min(now - last, self.max_lag), now
            cycle_budget += elapsed * self.cycles_per_second
            timer_budget += elapsed * self.timer_hz
            while cycle_budget >= 1 and not stop.is_set():
                self.chip.step()
                self.cycles += 1
                cycle_budget -= 1
            while timer_budget >= 1 and not stop.is_set():
                self.chip.tick_timers()
                self.frames += 1
                timer_budget -= 1
                if on_frame:
                    on_frame(self.chip)
            self.sleep(IDLE_SLEEP)
        log.info("Stopped after %d cycles and %d frames", self.cycles, self.frames)


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    chip = Chip8(on_unknown=SKIP if args.skip_unknown else RAISE)
    try:
        chip.load(load_rom(args.file))
    except (OSError, Chip8Error) as err:
        sys.exit(f"Cannot load {args.file}: {err}")
    # pygame initialization
    pygame.init()
    pygame.display.set_caption(os.path.basename(args.file))
    screen = Screen(s=args.scale)
    buzzer = None if args.mute else Buzzer()
    stop = threading.Event()

    def on_frame(chip):
        handle_events(chip, stop)
        screen.render(chip.framebuffer)
        if buzzer:
            buzzer.update(chip.st > 0)

    scheduler = Scheduler(chip, cycles_per_second=args.cps)
    try:
        scheduler.run(stop, on_frame)
    except Chip8Error as err:
        sys.exit(f"********** THE EMULATOR CRASHED: {err}\n{chip}\n{chip.framebuffer}")
    finally:
        if buzzer:
            buzzer.stop()
        pygame.quit()


if __name__ == "__main__":
    main()
