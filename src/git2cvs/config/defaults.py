"""Starter git2cvs.toml template."""

CONFIG_FILENAME = "git2cvs.toml"

DEFAULT_TOML = """\
# git2cvs configuration
version = "1.0"

[cvs]
binary = "cvs"
# cvsroot = ":local:/srv/cvsroot"   # defaults to $CVSROOT
module = "."              # module to check out
target = "src"            # directory in the checkout that mirrors the git tree; "." for top level
author_trailer = false    # append Git-Author / Git-Date lines to each log message

[git]
remote = false            # look the branch up under refs/remotes
timeout = 120             # seconds per git command

[replay]
set_mtime = false         # stamp written files with the git commit time
# workdir = "/var/tmp/git2cvs-checkout"   # keep the checkout; temporary if unset

[output]
format = "terminal"       # terminal | json | yaml
show_summary = true

[logging]
level = "warning"         # debug | info | warning | error
"""
