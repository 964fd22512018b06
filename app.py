# app.py - gesture-controlled particle field
import argparse
import logging
import time

import cv2

from hand_signal import HandSignalProcessor
from hands import DEFAULT_MODEL_PATH, Hands
from interface import Interface
from params import DEFAULT_CONFIG, TEMPLATES, load_settings
from prompt_cmd import PromptCommands
from renderer import ParticleRenderer
from sim import ParticleSimulator
from suggest import SuggestionClient, SuggestionRunner
from tracking import FrameSlot, HandTrackingService, VideoSource

WINDOW_NAME = "Particle Flow"
WINDOW_W = 1280
WINDOW_H = 720
FPS_SMOOTH = 0.9


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Gesture-controlled generative particle field")
    ap.add_argument("--camera", type=int, default=None, help="camera index (default: first working one)")
    ap.add_argument("--model", default=DEFAULT_MODEL_PATH, help="path to hand_landmarker.task")
    ap.add_argument("--backend", choices=("numpy", "taichi"), default="numpy")
    ap.add_argument("--seed", type=int, default=None, help="spawn RNG seed")
    ap.add_argument("--template", choices=sorted(TEMPLATES), default=None)
    ap.add_argument("--api-key", default=None, help="Gemini API key (default: GEMINI_API_KEY / API_KEY)")
    ap.add_argument("--no-glow", action="store_true")
    ap.add_argument("--log-level", default="INFO")
    return ap.parse_args(argv)


def build_simulator(backend, seed=None):
    if backend == "taichi":
        from sim_taichi import ParticleSimTaichi
        return ParticleSimTaichi(seed=seed)
    return ParticleSimulator(seed=seed)


def _print_banner(ai_available):
    print("\n" + "=" * 60)
    print("✨ PARTICLE FLOW")
    print("=" * 60)
    print("\n🖐️ GESTURES:")
    print("   Open hand - expel particles")
    print("   Pinch     - attract particles")
    print("\n📋 KEYS:")
    print("   1-4 templates (" + ", ".join(TEMPLATES) + ")  0 default")
    print("   +/- count   D distribution   S shape   C color")
    print("   X dismiss message   H toggle help   ESC exit")
    print("\n💬 TERMINAL:")
    print("   Type a template name, 'reset', or describe an effect")
    if not ai_available:
        print("   ⚠️  No API key: set GEMINI_API_KEY to enable AI suggestions")
    print("\n" + "=" * 60 + "\n")


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(api_key=args.api_key)
    interface = Interface(TEMPLATES[args.template] if args.template else DEFAULT_CONFIG)

    sim = build_simulator(args.backend, args.seed)
    active = interface.config
    sim.configure(active)

    renderer = ParticleRenderer(WINDOW_W, WINDOW_H, glow=not args.no_glow)

    tracker = HandTrackingService(
        Hands(model_path=args.model),
        VideoSource(index=args.camera),
        processor=HandSignalProcessor(),
        slot=FrameSlot(),
    )
    runner = SuggestionRunner(SuggestionClient(settings))
    prompts = PromptCommands()

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(WINDOW_NAME, WINDOW_W, WINDOW_H)

    _print_banner(settings.has_api_key)

    tracker.start()
    prompts.start()

    t0 = time.perf_counter()
    prev = t0
    fps_smooth = 0.0

    try:
        while True:
            now = time.perf_counter()
            dt = max(1e-6, now - prev)
            prev = now
            fps = 1.0 / dt
            fps_smooth = fps if fps_smooth == 0 else FPS_SMOOTH * fps_smooth + (1.0 - FPS_SMOOTH) * fps

            # Follow the window size so the camera distance adapts to aspect
            _, _, win_w, win_h = cv2.getWindowImageRect(WINDOW_NAME)
            if win_w > 0 and win_h > 0:
                renderer.resize(win_w, win_h)

            if interface.config is not active:
                active = interface.config
                sim.configure(active)

            transforms = sim.tick(tracker.latest(), now - t0)
            frame = renderer.render(transforms, active)
            interface.draw(
                frame,
                ready=tracker.ready,
                reason=tracker.reason,
                ai_available=settings.has_api_key,
                busy=runner.busy,
                fps=fps_smooth,
            )
            cv2.imshow(WINDOW_NAME, frame)

            key = cv2.waitKey(1) & 0xFF
            if key == 27:
                break
            if key != 255:
                interface.handle_key(key)

            cmd = prompts.pop_command()
            if cmd:
                kind, text = cmd
                if kind == "quit":
                    break
                if kind == "prompt":
                    print(f"💬 Generating: {text}")
                    if not runner.submit(text):
                        interface.show_error("Still generating the previous prompt")
                else:
                    interface.apply_command(cmd)

            result = runner.pop_result()
            if result:
                interface.apply_suggestion(result)

            if cv2.getWindowProperty(WINDOW_NAME, cv2.WND_PROP_VISIBLE) < 1:
                break
    finally:
        tracker.dispose()
        prompts.stop()
        cv2.destroyAllWindows()

    print("\n✅ Particle Flow shutdown complete")


if __name__ == "__main__":
    main()
