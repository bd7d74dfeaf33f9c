"""
Print a summary of an Amber NetCDF restart file.
"""
import argparse
import logging
import logging.config
import os
import sys

from ncrestart.formats import AmberRestartFormat, FormatError
from ncrestart.netcdfplus import NetCDFPlusError


def make_parser():
    parser = argparse.ArgumentParser(
        description='Show the content of an Amber NetCDF restart file.')
    parser.add_argument('file', metavar='file.ncrst',
                        help='the restart file to analyze')
    parser.add_argument('--positions', type=int, default=0, metavar='N',
                        help='print the first N positions')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='logging level for the library')
    parser.add_argument('--log-config', default=None,
                        help='logging configuration file, see '
                             'ncrestart/logging.conf')
    return parser


def headline(s, out):
    out.write("\n")
    out.write("#" * 79 + "\n")
    out.write("## " + s.upper() + "\n")
    out.write("#" * 79 + "\n")
    out.write("\n")


def line(a, b, out):
    out.write('    {:<32} : {:<30}\n'.format(a, b))


def nline(n, a, out):
    out.write('     {:>4}] {}\n'.format(n, a))


def describe(file_name, n_positions=0, out=None):
    """Write the summary of `file_name` to `out`."""
    if out is None:
        out = sys.stdout

    with AmberRestartFormat(file_name, 'r') as restart:
        storage = restart.file

        headline("General", out)
        line("Filename", file_name, out)
        line("Size", storage.file_size_str, out)
        line("Number of frames", restart.nsteps(), out)

        headline("Attributes", out)
        for name in storage.ncattrs():
            line(name, storage.global_attribute(name), out)

        headline("Dimensions", out)
        for name in storage.dimensions:
            line(name, storage.dimension(name), out)

        frame = restart.read()

    headline("Frame", out)
    line("Number of atoms", frame.n_atoms, out)
    line("Velocities", "yes" if frame.has_velocities else "no", out)

    cell = frame.cell
    headline("Unit cell", out)
    line("Shape", cell.shape, out)
    line("Lengths [angstrom]", "%g %g %g" % cell.lengths, out)
    line("Angles [degree]", "%g %g %g" % cell.angles, out)

    if n_positions > 0:
        headline("Positions", out)
        for idx, pos in enumerate(frame.positions[:n_positions]):
            nline(idx, "%12.6f %12.6f %12.6f" % tuple(pos), out)


def main(argv=None):
    args = make_parser().parse_args(argv)

    if args.log_config is not None:
        logging.config.fileConfig(args.log_config,
                                  disable_existing_loggers=False)
    else:
        logging.basicConfig(level=getattr(logging, args.log_level))

    if not os.path.isfile(args.file):
        sys.stderr.write("%s does not exist!\n" % args.file)
        return 1

    try:
        describe(args.file, args.positions)
    except (FormatError, NetCDFPlusError) as e:
        sys.stderr.write("%s: %s\n" % (args.file, e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
