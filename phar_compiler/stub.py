"""Bootstrap stub generation."""

from phar_compiler.version import BuildContext


SECONDS_PER_DAY: int = 86400

_APC_GUARD: str = """// Avoid APC causing random fatal errors per https://github.com/composer/composer/issues/264
if (extension_loaded('apc') && ini_get('apc.enable_cli') && ini_get('apc.cache_by_default')) {
    if (version_compare(phpversion('apc'), '3.0.12', '>=')) {
        ini_set('apc.cache_by_default', 0);
    } else {
        fwrite(STDERR, 'Warning: APC <= 3.0.12 may cause fatal errors when running commands.'.PHP_EOL);
        fwrite(STDERR, 'Update APC, or set apc.enable_cli or apc.cache_by_default to 0 in your php.ini.'.PHP_EOL);
    }
}"""


def warning_time(context: BuildContext, *, days: int) -> int | None:
    """Return when a dev build becomes stale, or ``None`` for tagged builds.

    :param context: Resolved build context.
    :param days: Days after the commit date.
    :returns: Epoch seconds, or ``None``.
    """

    if context.is_dev_build is False:
        return None
    return context.timestamp + days * SECONDS_PER_DAY


def render_stub(
    *,
    context: BuildContext,
    alias: str,
    entry_script: str,
    banner: str,
    warning_constant: str = "COMPOSER_DEV_WARNING_TIME",
    warning_days: int = 60,
) -> str:
    """Render the stub executed when the phar is run.

    :param context: Resolved build context.
    :param alias: Phar alias mapped by ``Phar::mapPhar``.
    :param entry_script: Archive path of the script to require.
    :param banner: Copyright comment block.
    :param warning_constant: Constant holding the stale-build time.
    :param warning_days: Days until a dev build is considered stale.
    :returns: Stub source ending with ``__HALT_COMPILER();``.
    """

    lines: list[str] = [
        "#!/usr/bin/env php",
        "<?php",
        banner,
        "",
        _APC_GUARD,
        "",
        f"Phar::mapPhar('{_php_quote(alias)}');",
        "",
    ]

    stale_at: int | None = warning_time(context, days=warning_days)
    if stale_at is not None:
        lines.append(f"define('{warning_constant}', {stale_at});")

    lines.append(f"require 'phar://{_php_quote(alias)}/{_php_quote(entry_script)}';")
    lines.append("")
    lines.append("__HALT_COMPILER();")
    return "\n".join(lines)


def _php_quote(value: str) -> str:
    """Escape a value for a single-quoted PHP string."""

    return value.replace("\\", "\\\\").replace("'", "\\'")
