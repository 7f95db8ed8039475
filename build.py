import platform
import shlex
import subprocess
import sys


def nuitka_command() -> list[str]:
    output = "modqueue.exe" if platform.system() == "Windows" else "modqueue.bin"
    return [
        sys.executable,
        "-m",
        "nuitka",
        "--onefile",
        "--enable-console",
        f"--output-filename={output}",
        # 内置插件按名称动态导入，需要显式打包
        "--include-package=modqueue.activity.builtin",
        "--assume-yes-for-downloads",
        "modqueue/__main__.py",
    ]


def build_with_nuitka():
    print(f"Detected OS: {platform.system()}")

    command = nuitka_command()
    print("\nStarting Nuitka build process with command:")
    print(" ".join(shlex.quote(arg) for arg in command))
    print("-" * 50)

    try:
        subprocess.run(command, check=True)
    except subprocess.CalledProcessError as e:
        print("-" * 50)
        print("Error during Nuitka build:")
        print(f"Command: {e.cmd}")
        print(f"Return Code: {e.returncode}")
        sys.exit(1)
    except FileNotFoundError:
        print("-" * 50)
        print("Error: Nuitka or Python executable not found.")
        print("Install the build extra first: pip install -e .[build]")
        sys.exit(1)

    print("-" * 50)
    print("Nuitka build process finished successfully!")


if __name__ == "__main__":
    build_with_nuitka()
