import click

@click.group()
@click.option('--verbose', is_flag=True, help="Print each processing step and per-sample poses")
@click.option('--debug', is_flag=True, help="Attach to a debugpy server on localhost:5678 before running")
@click.pass_context
def cli(ctx, verbose, debug):
    """Initialization-error datasets for single-view 2D/3D registration."""
    ctx.obj = {"verbose": verbose}
    if debug:
        import debugpy
        debugpy.connect(("localhost", 5678))
        click.echo("🐛 Connected to debugger on localhost:5678, waiting for it to resume...")
        debugpy.wait_for_client()
