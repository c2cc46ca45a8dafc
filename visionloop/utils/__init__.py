"""
Utils package.

screen and mouse talk to the real display (mss, pyautogui) and overlay to
the keyboard hook (pynput); import them from their modules where needed.
"""
